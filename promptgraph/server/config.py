"""
Server settings, read from PROMPTGRAPH_* environment variables.

`.env` in the project root is loaded first (python-dotenv) so local overrides
do not need a manual `export`.
"""
from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_PREFIX = "PROMPTGRAPH_"

_ENV_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "../..", ".env"))


class ConfigValidationError(ValueError):
    """Raised when the server settings do not validate."""


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=3001, ge=1, le=65535)
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    seed_demo: bool = True
    reload: bool = False

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"unknown log level '{value}'")
        return level

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value


def _from_environ(environ: Mapping[str, str]) -> Dict[str, str]:
    raw: Dict[str, str] = {}
    for name in ServerSettings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            raw[name] = environ[key]
    return raw


def load_settings(environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> ServerSettings:
    """Validate settings from *environ* (defaults to os.environ)."""
    if environ is None:
        if dotenv:
            load_dotenv(_ENV_PATH)
        environ = os.environ
    try:
        return ServerSettings.model_validate(_from_environ(environ))
    except ValidationError as exc:
        raise ConfigValidationError(str(exc)) from exc
