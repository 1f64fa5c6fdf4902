"""Domain models for capsule.

This package contains the request, reply, and value objects used
throughout the system. All models use Pydantic v2 for validation and
serialization.
"""

from capsule.domain.models import (
    ArtifactRef,
    CommandRequest,
    CommandResult,
    ErrorResponse,
    GenerationReply,
    GenerationRequest,
    HealthResponse,
    SearchResponse,
    SweepReport,
    VisionReply,
)

__all__ = [
    "ArtifactRef",
    "CommandRequest",
    "CommandResult",
    "ErrorResponse",
    "GenerationReply",
    "GenerationRequest",
    "HealthResponse",
    "SearchResponse",
    "SweepReport",
    "VisionReply",
]
