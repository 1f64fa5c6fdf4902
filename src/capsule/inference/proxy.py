"""Generation proxy between API callers and the inference service.

Builds the upstream request, optionally attaching an uploaded artifact,
and relays the answer either whole or as a byte stream. An attached
artifact is released on every exit path.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, AsyncIterator

import httpx

from capsule.domain.models import ArtifactRef, GenerationReply, GenerationRequest
from capsule.inference.client import (
    InferenceClient,
    InferenceResponseError,
)
from capsule.uploads.store import UploadStore

logger = logging.getLogger(__name__)


class InferenceProxy:
    """Forwards generation requests and owns artifact release.

    Artifact bytes travel inline (base64 in the upstream ``images``
    list), so the inference service does not need access to the local
    upload directory.
    """

    def __init__(self, client: InferenceClient, store: UploadStore) -> None:
        self._client = client
        self._store = store

    async def generate(
        self,
        request: GenerationRequest,
        artifact: ArtifactRef | None = None,
    ) -> GenerationReply:
        """Run one non-streaming generation and return the whole reply.

        Raises:
            InferenceUnavailableError: The upstream could not be reached.
            InferenceResponseError: The upstream answered with an error or
                a body without a ``response`` field.
        """
        async with self._store.consume(artifact) as payload:
            data = await self._client.generate(_build_payload(request, payload))

        reply = data.get("response")
        if not isinstance(reply, str):
            raise InferenceResponseError("Inference reply is missing the 'response' field")
        logger.debug("Generation with %s returned %d chars", request.model, len(reply))
        return GenerationReply(
            model=data.get("model") or request.model,
            reply=reply,
            done=bool(data.get("done", True)),
        )

    async def stream(
        self,
        request: GenerationRequest,
        artifact: ArtifactRef | None = None,
    ) -> AsyncIterator[bytes]:
        """Open an upstream stream and return an iterator over its bytes.

        The upstream connection is established before this returns, so an
        unreachable service raises here rather than mid-stream. The
        artifact's bytes are inlined into the upstream request, so the
        artifact is released before the connection is opened.
        """
        async with self._store.consume(artifact) as payload:
            upstream_payload = _build_payload(request, payload)
        response = await self._client.open_stream(upstream_payload)
        return _relay(response, request.model)


async def _relay(response: httpx.Response, model: str) -> AsyncIterator[bytes]:
    """Forward decoded upstream bytes as they arrive, closing the response at the end."""
    sent = 0
    try:
        async for chunk in response.aiter_bytes():
            sent += len(chunk)
            yield chunk
    except httpx.HTTPError as e:
        # Headers are already sent; nothing can be reported in-band.
        logger.error("Upstream stream for %s failed after %d bytes: %s", model, sent, e)
    finally:
        await response.aclose()
        logger.debug("Relayed %d bytes from %s", sent, model)


def _build_payload(request: GenerationRequest, artifact_bytes: bytes | None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": request.model,
        "prompt": request.prompt,
        "stream": request.stream,
    }
    if artifact_bytes is not None:
        payload["images"] = [base64.b64encode(artifact_bytes).decode("ascii")]
    return payload
