# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Composition root for the healthcare MCP server.

:class:`HealthcareMCPServer` builds the process-scoped state (cache, usage
ledger, tool registry) exactly once and hands it by reference to the
dispatcher; nothing below this module keeps module-level state.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import anyio
import httpx
from mcp import types
from starlette.applications import Starlette

from .manager import SessionTransportManager
from .protocol import ProtocolHandler
from .session import Session
from .transports import StreamableHTTPTransport
from .. import __version__
from ..cache import TTLCache
from ..config import ServerSettings, get_settings
from ..dispatcher import Dispatcher
from ..registry import ToolRegistry
from ..tools import build_registry
from ..usage import UsageLedger
from ..utils import get_logger


DIRECT_SESSION_KEY = "direct"
"""Ledger key for calls made through :meth:`HealthcareMCPServer.invoke_tool`."""


class HealthcareMCPServer:
    """Healthcare tool catalog served over the Model Context Protocol.

    Args:
        name: Server name reported during ``initialize``.
        version: Server version reported during ``initialize``.
        settings: Runtime configuration; read from the environment if omitted.
        registry: Pre-built tool registry.  When omitted the default catalog is
            built around a shared :class:`httpx.AsyncClient`.
        cache: Result cache; one is created from ``settings`` if omitted.
        ledger: Usage ledger; one is created if omitted.
        http_client: Client used by the default catalog.  A client created
            here is closed when :meth:`running` exits.
        instructions: Optional instructions returned to clients on initialize.
    """

    def __init__(
        self,
        name: str = "healthcare-mcp",
        *,
        version: str | None = None,
        settings: ServerSettings | None = None,
        registry: ToolRegistry | None = None,
        cache: TTLCache | None = None,
        ledger: UsageLedger | None = None,
        http_client: httpx.AsyncClient | None = None,
        instructions: str | None = None,
    ) -> None:
        self.name = name
        self.version = version or __version__
        self.settings = settings or get_settings()
        self._logger = get_logger(f"healthcare_mcp.server.{name}")

        self.cache = cache if cache is not None else TTLCache(self.settings.cache_ttl, max_entries=self.settings.cache_max_entries)
        self.ledger = ledger if ledger is not None else UsageLedger()

        self._http_client = http_client
        self._owns_client = False
        if registry is None:
            if self._http_client is None:
                self._http_client = httpx.AsyncClient(
                    timeout=self.settings.upstream_timeout,
                    headers={"User-Agent": f"{name}/{self.version}"},
                    follow_redirects=True,
                )
                self._owns_client = True
            registry = build_registry(self._http_client, self.settings)
        registry.freeze()
        self.registry = registry

        self.dispatcher = Dispatcher(self.registry, cache=self.cache, ledger=self.ledger)
        self.protocol = ProtocolHandler(
            types.Implementation(name=name, version=self.version),
            self.dispatcher,
            instructions=instructions,
        )
        self.manager = SessionTransportManager(
            self.protocol,
            mode=self.settings.transport_mode,
            endpoint=self.settings.path,
            idle_timeout=self.settings.session_idle_timeout,
            request_timeout=self.settings.request_timeout,
            sweep_interval=self.settings.session_sweep_interval,
            write_timeout=self.settings.stream_write_timeout,
        )
        self.manager.add_close_listener(self._log_usage)
        self._transport = StreamableHTTPTransport(self)

    @property
    def tool_names(self) -> list[str]:
        return self.registry.names

    async def invoke_tool(self, name: str, **arguments: Any) -> types.CallToolResult:
        """Call a tool in-process, bypassing the transport."""
        return await self.dispatcher.handle(name, arguments, session_id=DIRECT_SESSION_KEY)

    # //////////////////////////////////////////////////////////////////
    # Runtime
    # //////////////////////////////////////////////////////////////////

    @asynccontextmanager
    async def running(self) -> AsyncIterator[None]:
        """Run background sweepers; close every session on exit."""
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self.cache.run_sweeper, self.settings.cache_sweep_interval)
                async with self.manager.run():
                    self._logger.info(
                        "Serving %d tools in %s mode", len(self.registry), self.settings.transport_mode.value
                    )
                    yield
                tg.cancel_scope.cancel()
        finally:
            if self._owns_client and self._http_client is not None:
                with anyio.CancelScope(shield=True):
                    await self._http_client.aclose()
            self._log_totals()

    def streamable_http_app(self, path: str | None = None) -> Starlette:
        """Return the Starlette application serving this server."""
        return self._transport.build_app(path=path or self.settings.path)

    async def serve(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        path: str | None = None,
        log_level: str = "info",
        **uvicorn_options: Any,
    ) -> None:
        await self._transport.run(
            host=host or self.settings.host,
            port=port or self.settings.port,
            path=path or self.settings.path,
            log_level=log_level,
            **uvicorn_options,
        )

    # //////////////////////////////////////////////////////////////////
    # Internal helpers
    # //////////////////////////////////////////////////////////////////

    def _log_usage(self, session: Session) -> None:
        summary = self.ledger.summarize(session.id)
        if summary:
            self._logger.info("Session %s usage: %s", session.id, summary, extra={"context": {"usage": summary}})

    def _log_totals(self) -> None:
        totals = self.ledger.totals()
        if totals:
            self._logger.info("Tool usage totals: %s", totals, extra={"context": {"usage": totals}})


__all__ = ["DIRECT_SESSION_KEY", "HealthcareMCPServer"]
