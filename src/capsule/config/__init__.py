"""Configuration management for capsule.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for deployment values like
the inference service URL and API keys.
"""

from capsule.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
