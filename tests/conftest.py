"""Shared test fixtures for the capsule test suite.

Provides isolated upload stores, a fake inference service built on
httpx.MockTransport, and settings pointed at temporary directories.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable

import httpx
import pytest

from capsule.config.settings import Settings, UploadsConfig
from capsule.inference.client import InferenceClient
from capsule.uploads.store import UploadStore


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of settings under test."""
    for name in ("OLLAMA_URL", "PORT", "SEARCH_API_KEY", "SSH_API_KEY", "VISION_API_KEY"):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Upload Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "uploads"
    directory.mkdir()
    return directory


@pytest.fixture
def upload_store(upload_dir: Path) -> UploadStore:
    """An UploadStore over an isolated temporary directory."""
    return UploadStore(upload_dir)


@pytest.fixture
def settings(upload_dir: Path) -> Settings:
    return Settings(uploads=UploadsConfig(directory=upload_dir, retention_hours=24))


# ---------------------------------------------------------------------------
# Fake Inference Service
# ---------------------------------------------------------------------------


class FakeInferenceService:
    """Records requests to /api/generate and answers like Ollama does."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.reply = "Hello from the model"
        self.stream_chunks: list[bytes] = [
            b'{"response":"Hel","done":false}\n',
            b'{"response":"lo","done":true}\n',
        ]
        self.status_code = 200
        self.raw_body: bytes | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path != "/api/generate":
            return httpx.Response(200, text="Ollama is running")
        body = json.loads(request.content)
        self.requests.append(body)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "model not found"})
        if self.raw_body is not None:
            return httpx.Response(200, content=self.raw_body)
        if body.get("stream"):
            return httpx.Response(200, content=b"".join(self.stream_chunks))
        return httpx.Response(
            200,
            json={"model": body["model"], "response": self.reply, "done": True},
        )

    @property
    def last_request(self) -> dict:
        return self.requests[-1]


@pytest.fixture
def fake_inference() -> FakeInferenceService:
    return FakeInferenceService()


@pytest.fixture
def inference_client(fake_inference: FakeInferenceService) -> InferenceClient:
    """An InferenceClient wired to the fake inference service."""
    return InferenceClient(
        base_url="http://inference.test",
        timeout=5.0,
        transport=httpx.MockTransport(fake_inference.handler),
    )


def _refuse_connection(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


@pytest.fixture
def unreachable_client() -> InferenceClient:
    """An InferenceClient whose every request fails to connect."""
    return InferenceClient(
        base_url="http://inference.test",
        timeout=5.0,
        transport=httpx.MockTransport(_refuse_connection),
    )


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], InferenceClient]:
    """Build an InferenceClient around an arbitrary request handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> InferenceClient:
        return InferenceClient(
            base_url="http://inference.test",
            timeout=5.0,
            transport=httpx.MockTransport(handler),
        )

    return _make
