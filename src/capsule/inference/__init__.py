"""Inference service integration for capsule.

Provides the HTTP client for the upstream generation API and the proxy
that relays caller prompts (and uploaded artifacts) through it.
"""

from capsule.inference.client import (
    InferenceClient,
    InferenceError,
    InferenceResponseError,
    InferenceUnavailableError,
)
from capsule.inference.proxy import InferenceProxy

__all__ = [
    "InferenceClient",
    "InferenceError",
    "InferenceProxy",
    "InferenceResponseError",
    "InferenceUnavailableError",
]
