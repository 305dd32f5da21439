"""Configuration for the workflow builder CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_config_dir() -> Path:
    return Path.home() / ".workflow-builder"


class BuilderSettings(BaseSettings):
    """Settings for the local builder.

    Environment variables:
    - WORKFLOW_BUILDER_CONFIG_DIR  (optional)
    - LOG_LEVEL                    (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `BuilderSettings(_env_file=path_to_env)`.
    """

    config_dir: Path = Field(
        default_factory=_default_config_dir,
        validation_alias="WORKFLOW_BUILDER_CONFIG_DIR",
        description="Per-user directory holding builder sessions",
    )

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return normalized

    @field_validator("config_dir")
    @classmethod
    def _expand_home(cls, value: Path) -> Path:
        return value.expanduser()

    @property
    def builder_dir(self) -> Path:
        """Directory where session files and the current pointer live."""

        return self.config_dir / "builder"
