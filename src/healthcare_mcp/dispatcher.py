# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Tool dispatch: registry lookup, usage accounting, caching, envelopes.

Every call yields a :class:`mcp.types.CallToolResult`.  Success carries the
collaborator result as pretty-printed JSON text; failures carry
``"Error: <message>"`` with ``isError`` set.  Exceptions never escape
:meth:`Dispatcher.handle`.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import Any

from mcp import types

from .cache import TTLCache
from .errors import CollaboratorFailure, HealthcareMCPError, InvalidArguments, UnknownOperation
from .registry import RegisteredTool, ToolRegistry
from .usage import UsageLedger
from .utils import get_logger


def success_envelope(result: Any) -> types.CallToolResult:
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result, indent=2, ensure_ascii=False, default=str)
    return types.CallToolResult(content=[types.TextContent(type="text", text=text)], isError=False)


def error_envelope(error: BaseException | str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=f"Error: {error}")], isError=True)


class Dispatcher:
    """Route tool calls to their collaborators.

    The cache and ledger are process-scoped objects owned by the server and
    passed in here; the dispatcher never creates its own.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        cache: TTLCache,
        ledger: UsageLedger,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._cache = cache
        self._ledger = ledger
        self._logger = logger or get_logger("healthcare_mcp.dispatcher")

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def handle(
        self, operation: str, arguments: Mapping[str, Any] | None, *, session_id: str
    ) -> types.CallToolResult:
        entry = self._registry.get(operation)
        if entry is None:
            self._logger.info("Rejected call to unknown tool %r", operation)
            return error_envelope(UnknownOperation(operation))

        # Usage counts attempts, including ones that fail below.
        self._ledger.record(session_id, operation)

        try:
            bound = entry.descriptor.bind(arguments)
            result = await self._invoke(entry, bound)
        except InvalidArguments as exc:
            return error_envelope(f"Invalid arguments: {exc}")
        except HealthcareMCPError as exc:
            self._logger.warning("Tool %s failed: %s", operation, exc)
            return error_envelope(exc)
        except Exception as exc:
            self._logger.exception("Tool %s raised", operation)
            return error_envelope(CollaboratorFailure(str(exc) or type(exc).__name__, operation=operation))

        return success_envelope(result)

    async def _invoke(self, entry: RegisteredTool, arguments: dict[str, Any]) -> Any:
        if not entry.descriptor.cacheable:
            return await entry.collaborator.execute(arguments)

        key = self._cache.key(entry.name, arguments)
        return await self._cache.fetch(key, lambda: entry.collaborator.execute(arguments))


__all__ = ["Dispatcher", "error_envelope", "success_envelope"]
