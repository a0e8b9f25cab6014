"""Engine settings resolved from environment variables."""

from __future__ import annotations

from typing import Literal
import logging
import os

from pydantic import BaseModel, field_validator

VERBOSE_LEVEL = 15  # Between INFO (20) and DEBUG (10)
logging.addLevelName(VERBOSE_LEVEL, "VERBOSE")

LOG_LEVEL_ENV = "OPSYNTH_LOG_LEVEL"
IMPLICIT_COPY_EFFECT_ENV = "OPSYNTH_IMPLICIT_COPY_EFFECT"
SERVE_HOST_ENV = "OPSYNTH_SERVE_HOST"
SERVE_PORT_ENV = "OPSYNTH_SERVE_PORT"

_LEVELS = {"DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"}


class OpsynthSettings(BaseModel):
    """Runtime knobs for the synthesis engine and its CLI/API surfaces."""

    log_level: str = "INFO"
    implicit_copy_effect: Literal["may_fail", "cannot_fail"] = "cannot_fail"
    serve_host: str = "127.0.0.1"
    serve_port: int = 8000

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("implicit_copy_effect", mode="before")
    @classmethod
    def _normalize_effect(cls, value: str) -> str:
        return str(value).strip().lower().replace("-", "_")


def load_settings(environ: dict[str, str] | None = None) -> OpsynthSettings:
    """Build settings from the process environment (or the given mapping)."""
    env = os.environ if environ is None else environ
    values: dict[str, str] = {}
    for field_name, env_name in (
        ("log_level", LOG_LEVEL_ENV),
        ("implicit_copy_effect", IMPLICIT_COPY_EFFECT_ENV),
        ("serve_host", SERVE_HOST_ENV),
        ("serve_port", SERVE_PORT_ENV),
    ):
        raw = env.get(env_name, "").strip()
        if raw:
            values[field_name] = raw
    return OpsynthSettings(**values)


_SETTINGS: OpsynthSettings | None = None


def get_settings() -> OpsynthSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = load_settings()
    return _SETTINGS


def reset_settings() -> None:
    """Forget cached settings so the next access rereads the environment."""
    global _SETTINGS
    _SETTINGS = None
