"""Configuration management for capsule.

Loads settings from a YAML configuration file with environment variable
overrides for deployment values (inference URL, port, API keys).
Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/capsule.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class InferenceConfig(BaseModel):
    base_url: str = Field(default="http://localhost:11434")
    timeout: float = Field(default=120.0, gt=0)
    vision_model: str = Field(default="llama3.2-vision:11b")


class UploadsConfig(BaseModel):
    directory: Path = Field(default=Path("uploads"))
    retention_hours: float = Field(default=24.0, gt=0)


class SSHConfig(BaseModel):
    connect_timeout: float = Field(default=10.0, gt=0)
    command_timeout: float = Field(default=60.0, gt=0)
    allowed_hosts: list[str] = Field(
        default_factory=list,
        description="Hosts /api/ssh may target. Empty means unrestricted.",
    )
    known_hosts: str | None = Field(default=None, description="known_hosts file path")
    verify_host_keys: bool = Field(default=True)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the capsule backend.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "CAPSULE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # Placeholder keys for future integrations (unused by current routes)
    search_api_key: SecretStr = Field(default=SecretStr(""))
    ssh_api_key: SecretStr = Field(default=SecretStr(""))
    vision_api_key: SecretStr = Field(default=SecretStr(""))

    server: ServerConfig = Field(default_factory=ServerConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    uploads: UploadsConfig = Field(default_factory=UploadsConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; prefixed env vars must win over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply the scaffold's plain (non-prefixed) environment variables."""
    ollama_url = os.environ.get("OLLAMA_URL", "")
    port = os.environ.get("PORT", "")

    if ollama_url:
        yaml_data.setdefault("inference", {})["base_url"] = ollama_url
    if port:
        yaml_data.setdefault("server", {})["port"] = port

    for env_name, field in (
        ("SEARCH_API_KEY", "search_api_key"),
        ("SSH_API_KEY", "ssh_api_key"),
        ("VISION_API_KEY", "vision_api_key"),
    ):
        value = os.environ.get(env_name, "")
        if value:
            yaml_data[field] = value
