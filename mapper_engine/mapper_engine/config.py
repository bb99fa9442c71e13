"""Process-level engine settings loaded from environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class EngineSettings(BaseSettings):
    """Where to find the configuration document and how to build it.

    Loaded from environment variables with the ``MAPPER_`` prefix (and a
    ``.env`` file when present), e.g. ``MAPPER_CONFIG_PATH=mapper.yaml``.
    """

    model_config = SettingsConfigDict(
        env_prefix="MAPPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_path: Path = Path("mapper-config.yaml")

    # Environment id to activate; the document's default when unset.
    environment: str | None = None

    # Directory that resource names in the document are resolved against.
    # Defaults to the directory holding the configuration document.
    base_path: Path | None = None

    log_level: str = "WARNING"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = str(v).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("environment", mode="before")
    @classmethod
    def _blank_environment(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def resolved_base_path(self) -> Path:
        return self.base_path if self.base_path is not None else self.config_path.resolve().parent


def load_settings(**overrides: object) -> EngineSettings:
    """Load settings from environment, with optional overrides for testing."""
    settings = EngineSettings(**overrides)  # type: ignore[arg-type]
    logger.debug("Loaded engine settings: config_path=%s environment=%s", settings.config_path, settings.environment)
    return settings
