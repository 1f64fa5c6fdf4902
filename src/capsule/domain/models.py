"""Core domain models for the capsule backend.

These models represent the data flowing through the system: transient
upload artifacts, generation requests relayed to the inference service,
remote command sessions, and the reports produced by the purge sweeper.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr


# ---------------------------------------------------------------------------
# Upload Models
# ---------------------------------------------------------------------------


class ArtifactRef(BaseModel):
    """Reference to a transient uploaded file held by the upload store.

    The on-disk name is the generated identifier; the client-supplied
    name is kept for logging only and never touches the filesystem.
    """

    model_config = ConfigDict(frozen=True)

    artifact_id: str = Field(description="Generated identifier (uuid4 hex)")
    path: Path = Field(description="Location of the payload on local storage")
    original_name: str = Field(default="", description="Untrusted client-supplied filename")
    size_bytes: int = Field(ge=0)
    created_at: datetime = Field(default_factory=datetime.now)


class SweepReport(BaseModel):
    """Outcome of one purge sweep over the upload directory."""

    directory: Path
    scanned: int = Field(default=0, ge=0)
    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Inference Models
# ---------------------------------------------------------------------------


class GenerationRequest(BaseModel):
    """A prompt to forward to the inference service."""

    model: str = Field(description="Model identifier understood by the inference service")
    prompt: str = Field(description="Prompt text")
    stream: bool = Field(default=False, description="Relay the upstream byte stream incrementally")


class GenerationReply(BaseModel):
    """A whole (non-streamed) reply from the inference service."""

    model: str
    reply: str = Field(description="Generated text from the upstream 'response' field")
    done: bool = True


class VisionReply(BaseModel):
    reply: str


# ---------------------------------------------------------------------------
# Remote Command Models
# ---------------------------------------------------------------------------


class CommandRequest(BaseModel):
    """One command to run on a remote host over SSH."""

    host: str = Field(min_length=1)
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(min_length=1)
    password: SecretStr
    command: str = Field(min_length=1)


class CommandResult(BaseModel):
    output: str = Field(description="stdout and stderr in arrival order")
    exit_status: int | None = Field(default=None)


# ---------------------------------------------------------------------------
# Misc Response Models
# ---------------------------------------------------------------------------


class SearchResponse(BaseModel):
    query: str
    results: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str = "ok"
    inference_reachable: bool = False
    upload_dir: str = ""


class ErrorResponse(BaseModel):
    error: str
