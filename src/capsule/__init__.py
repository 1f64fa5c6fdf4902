"""capsule -- Minimal backend in front of a local inference server.

Proxies chat and vision prompts to an Ollama-compatible generation
service, runs one-shot remote commands over SSH, and manages the
transient upload directory that vision requests pass through.
"""

__version__ = "0.1.0"
