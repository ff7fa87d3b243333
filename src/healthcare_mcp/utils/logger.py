# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Logging setup for healthcare-mcp.

Plain-text output by default; set ``HEALTHCARE_MCP_LOG_JSON=1`` for one JSON
object per line, which is what log shippers in container deployments expect.
Structured fields travel through ``extra={"context": {...}}`` and end up under
the ``context`` key of the JSON payload.
"""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
import os
from typing import Any, Final


DEFAULT_LOGGER_NAME: Final[str] = "healthcare_mcp"
ENV_LOG_LEVEL: Final[str] = "HEALTHCARE_MCP_LOG_LEVEL"
ENV_LOG_JSON: Final[str] = "HEALTHCARE_MCP_LOG_JSON"
DEFAULT_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

JsonSerializer = Callable[[dict[str, Any]], str]

# Attributes every LogRecord carries; anything else came in through ``extra``.
_BUILTIN_RECORD_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys() | {"message", "asctime", "context"}
)


class HealthcareMCPHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler installed by :func:`setup_logger`.

    The dedicated subclass lets repeated setup calls find and replace the
    handler without touching handlers installed by the host application.
    """


class StructuredJSONFormatter(logging.Formatter):
    """Serialize log records into single-line JSON."""

    def __init__(self, serializer: JsonSerializer | None = None, *, datefmt: str | None = None) -> None:
        super().__init__(datefmt=datefmt)
        self._serializer = serializer or _default_json_serializer

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        context: dict[str, Any] = {}
        explicit = getattr(record, "context", None)
        if isinstance(explicit, dict):
            context.update(explicit)
        for key, value in record.__dict__.items():
            if key not in _BUILTIN_RECORD_KEYS and key not in context:
                context[key] = value
        if context:
            payload["context"] = context

        return self._serializer(payload)


def _default_json_serializer(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _read_bool_env(key: str) -> bool:
    value = os.getenv(key)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _installed_handlers(root: logging.Logger) -> list[HealthcareMCPHandler]:
    return [handler for handler in root.handlers if isinstance(handler, HealthcareMCPHandler)]


def setup_logger(
    *,
    level: int | str | None = None,
    use_json: bool | None = None,
    json_serializer: JsonSerializer | None = None,
    fmt: str | None = None,
    datefmt: str | None = DEFAULT_DATEFMT,
    force: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        level: Log level. Falls back to ``HEALTHCARE_MCP_LOG_LEVEL`` and then
            ``INFO``.
        use_json: Emit JSON lines. Defaults to ``HEALTHCARE_MCP_LOG_JSON``.
        json_serializer: Replacement for ``json.dumps`` (e.g. ``orjson``).
        fmt: Format string for plain-text output.
        datefmt: Date format for both formatters.
        force: Replace a handler installed by an earlier call.
    """
    root = logging.getLogger()
    existing = _installed_handlers(root)
    if existing and not force:
        return
    for handler in existing:
        root.removeHandler(handler)
        handler.close()

    resolved_level = _resolve_level(level)
    root.setLevel(resolved_level)

    handler = HealthcareMCPHandler()
    handler.setLevel(resolved_level)
    resolved_json = use_json if use_json is not None else _read_bool_env(ENV_LOG_JSON)
    if resolved_json:
        handler.setFormatter(StructuredJSONFormatter(json_serializer, datefmt=datefmt))
    else:
        handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT, datefmt=datefmt))
    root.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger, installing the default handler on first use."""
    if not _installed_handlers(logging.getLogger()):
        setup_logger()
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "HealthcareMCPHandler",
    "StructuredJSONFormatter",
    "get_logger",
    "setup_logger",
]
