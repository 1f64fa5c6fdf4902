"""Placeholder search provider.

Returns a canned result echoing the query. Stands in for a real web
search integration until one is wired to the configured search API key.
"""

from __future__ import annotations

import logging

from capsule.domain.models import SearchResponse

logger = logging.getLogger(__name__)


class PlaceholderSearch:
    def __init__(self, api_key: str = "") -> None:
        self._api_key = api_key

    async def search(self, query: str) -> SearchResponse:
        logger.debug("Placeholder search for %r", query)
        return SearchResponse(query=query, results=[f"Search results for: {query}"])
