"""HTTP client for the upstream inference service.

Speaks the Ollama-style ``POST /api/generate`` protocol: a JSON body with
``model``, ``prompt``, ``stream`` and optional base64 ``images``; a JSON
reply (or newline-delimited JSON chunks when streaming).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"
HEALTH_TIMEOUT = 5.0


class InferenceClient:
    """Thin async wrapper around the inference service's HTTP API."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def connect(self) -> None:
        """Create the underlying HTTP client. Does not contact the service."""
        self._ensure_client()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Inference client closed")

    async def health_check(self) -> bool:
        """Check if the inference service answers at all."""
        try:
            resp = await self._ensure_client().get("/", timeout=min(HEALTH_TIMEOUT, self._timeout))
            return resp.status_code < 500
        except httpx.HTTPError as e:
            logger.debug("Inference health check failed: %s", e)
            return False

    async def generate(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a non-streaming generation request and return the JSON body."""
        client = self._ensure_client()
        try:
            resp = await client.post(GENERATE_PATH, json={**payload, "stream": False})
        except (httpx.TransportError, httpx.TimeoutException) as e:
            raise InferenceUnavailableError(
                f"Inference service at {self._base_url} not reachable: {e}"
            ) from e

        if resp.is_error:
            raise InferenceResponseError(
                f"Inference service returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise InferenceResponseError("Inference service returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise InferenceResponseError("Inference service returned an unexpected payload")
        return data

    async def open_stream(self, payload: dict[str, Any]) -> httpx.Response:
        """Start a streaming generation request.

        Returns the response with headers read but body unread. The caller
        owns it and must ``aclose()`` it.
        """
        client = self._ensure_client()
        request = client.build_request("POST", GENERATE_PATH, json={**payload, "stream": True})
        try:
            resp = await client.send(request, stream=True)
        except (httpx.TransportError, httpx.TimeoutException) as e:
            raise InferenceUnavailableError(
                f"Inference service at {self._base_url} not reachable: {e}"
            ) from e

        if resp.is_error:
            await resp.aclose()
            raise InferenceResponseError(
                f"Inference service returned HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp

    def _ensure_client(self) -> httpx.AsyncClient:
        """Lazily initialize the httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
            logger.info("Inference client targeting %s", self._base_url)
        return self._client

    async def __aenter__(self) -> InferenceClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


class InferenceError(Exception):
    """Base error for inference service interactions."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InferenceUnavailableError(InferenceError):
    """Raised when the inference service cannot be reached."""


class InferenceResponseError(InferenceError):
    """Raised when the inference service answers with an error or a malformed body."""
