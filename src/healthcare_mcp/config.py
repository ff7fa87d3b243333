# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Environment-driven server configuration.

``PORT`` and ``CACHE_TTL`` keep their bare names so existing deployments keep
working; everything else is namespaced under ``HEALTHCARE_MCP_``.

Example::

    HEALTHCARE_MCP_TRANSPORT_MODE=session PORT=9000 healthcare-mcp
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
import logging
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, NonNegativeFloat, NonNegativeInt, PositiveFloat, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CACHE_TTL = 86400.0
DEFAULT_PORT = 8000

_logger = logging.getLogger(__name__)


class TransportMode(str, Enum):
    """How the transport manager keys channels to sessions."""

    STATELESS = "stateless"
    """Throw-away channel per POST; nothing kept between requests."""

    SESSION = "session"
    """Client-addressed sessions; the id travels in a header or query param."""

    SHARED = "shared"
    """One persistent channel; conversation ids multiplexed onto it."""


class ServerSettings(BaseSettings):
    """Runtime configuration for :class:`~healthcare_mcp.server.HealthcareMCPServer`."""

    model_config = SettingsConfigDict(env_prefix="HEALTHCARE_MCP_", extra="ignore", frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(
        default=DEFAULT_PORT, ge=0, le=65535, validation_alias=AliasChoices("PORT", "HEALTHCARE_MCP_PORT", "port")
    )
    path: str = "/mcp"
    transport_mode: TransportMode = TransportMode.STATELESS

    cache_ttl: PositiveFloat = Field(
        default=DEFAULT_CACHE_TTL,
        description="Seconds a cached tool result stays fresh",
        validation_alias=AliasChoices("CACHE_TTL", "HEALTHCARE_MCP_CACHE_TTL", "cache_ttl"),
    )
    cache_max_entries: NonNegativeInt = Field(default=10_000, description="0 disables the bound")
    cache_sweep_interval: PositiveFloat = 300.0

    session_idle_timeout: NonNegativeFloat = Field(default=1800.0, description="0 disables idle expiry")
    session_sweep_interval: PositiveFloat = 60.0
    request_timeout: NonNegativeFloat = Field(default=120.0, description="0 disables the per-request timeout")
    sse_ping_interval: PositiveFloat = 15.0
    stream_write_timeout: PositiveFloat = 5.0

    upstream_timeout: PositiveFloat = 30.0
    ncbi_api_key: str | None = None
    openfda_api_key: str | None = None
    dicom_root: Path | None = Field(default=None, description="Restrict DICOM reads to this directory")

    @field_validator("cache_ttl", mode="before")
    @classmethod
    def _lenient_ttl(cls, value: Any) -> Any:
        # Unparseable or non-positive TTLs fall back to the default instead of
        # refusing to start.
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_CACHE_TTL
        try:
            ttl = float(value)
        except (TypeError, ValueError):
            _logger.warning("Ignoring invalid CACHE_TTL %r; using %s", value, DEFAULT_CACHE_TTL)
            return DEFAULT_CACHE_TTL
        if ttl <= 0:
            _logger.warning("Ignoring non-positive CACHE_TTL %r; using %s", value, DEFAULT_CACHE_TTL)
            return DEFAULT_CACHE_TTL
        return ttl

    @field_validator("port", mode="before")
    @classmethod
    def _blank_port(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_PORT
        return value

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        value = value.strip() or "/mcp"
        return value if value.startswith("/") else f"/{value}"


@lru_cache(maxsize=1)
def get_settings() -> ServerSettings:
    """Return the process-wide settings read from the environment."""
    return ServerSettings()


__all__ = ["DEFAULT_CACHE_TTL", "DEFAULT_PORT", "ServerSettings", "TransportMode", "get_settings"]
