"""Runtime settings resolved from the environment.

Every value has a fixed default; malformed values fall back to it rather
than aborting startup.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 4001
DEFAULT_WORKERS: int = 4

# Upstream fetcher defaults.
DEFAULT_USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:140.0) "
    "Gecko/20100101 Firefox/140.0"
)
DEFAULT_CONNECT_TIMEOUT: float = 15.0
DEFAULT_REQUEST_TIMEOUT: float = 30.0


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def parse_port(value: Any, fallback: int = DEFAULT_PORT) -> int:
    """Return *value* as a TCP port, or *fallback* if absent or invalid."""
    try:
        port = int(_text(value))
    except ValueError:
        return fallback
    return port if 0 < port < 65536 else fallback


def _positive(value: Any, fallback: Any, kind: type) -> Any:
    try:
        parsed = kind(_text(value))
    except ValueError:
        return fallback
    return parsed if parsed > 0 else fallback


class Settings(BaseSettings):
    """Process-wide configuration, built once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    host: str = Field(DEFAULT_HOST, validation_alias="HOST")
    port: int = Field(DEFAULT_PORT, validation_alias="PORT")
    workers: int = Field(DEFAULT_WORKERS, validation_alias="EXTRACTOR_WORKERS")
    """Maximum number of extractions running at the same time."""

    user_agent: str = Field(DEFAULT_USER_AGENT, validation_alias="EXTRACTOR_USER_AGENT")
    connect_timeout: float = Field(
        DEFAULT_CONNECT_TIMEOUT, validation_alias="EXTRACTOR_CONNECT_TIMEOUT",
    )
    request_timeout: float = Field(
        DEFAULT_REQUEST_TIMEOUT, validation_alias="EXTRACTOR_REQUEST_TIMEOUT",
    )

    @field_validator("host", "user_agent", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _text(value) or cls.model_fields[info.field_name].default

    @field_validator("port", mode="before")
    @classmethod
    def _valid_port(cls, value: Any) -> int:
        return parse_port(value)

    @field_validator("workers", mode="before")
    @classmethod
    def _positive_workers(cls, value: Any) -> int:
        return _positive(value, DEFAULT_WORKERS, int)

    @field_validator("connect_timeout", "request_timeout", mode="before")
    @classmethod
    def _positive_timeout(cls, value: Any, info: ValidationInfo) -> float:
        return _positive(value, cls.model_fields[info.field_name].default, float)
