# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared ASGI transport primitives.

This module provides the reusable half of an ASGI-facing transport.  Concrete
subclasses supply the request handler and route configuration while this
base class ties the application lifespan to the server runtime and starts
the underlying uvicorn server.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable  # noqa: TC003
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

from starlette.applications import Starlette
from uvicorn import Config, Server


if TYPE_CHECKING:
    from starlette.types import ASGIApp


class ServerRuntimeProtocol(Protocol):
    """Minimal contract a server must satisfy to be served over ASGI."""

    def running(self) -> AbstractAsyncContextManager[None]: ...


class ASGITransportBase(ABC):
    """Template for transports that present a server via ASGI."""

    TRANSPORT: tuple[str, ...] = ()
    ALLOWED_SCOPES: tuple[str, ...] = ("http",)
    DEFAULT_HOST: str = "0.0.0.0"
    DEFAULT_PORT: int = 8000
    DEFAULT_PATH: str = "/mcp"
    DEFAULT_LOG_LEVEL: str = "info"

    def __init__(self, server: ServerRuntimeProtocol) -> None:
        self._server = server

    @property
    def server(self) -> ServerRuntimeProtocol:
        """Return the owning server."""
        return self._server

    @property
    def transport_display_name(self) -> str:
        return self.TRANSPORT[1] if len(self.TRANSPORT) > 1 else type(self).__name__

    def build_app(self, *, path: str | None = None) -> Starlette:
        """Return the Starlette application serving this transport at *path*."""
        path = path or self.DEFAULT_PATH
        handler = self._build_handler(path)
        routes = list(self._build_routes(path=path, handler=handler))
        return Starlette(routes=routes, lifespan=self._lifespan())

    async def run(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        path: str | None = None,
        log_level: str | None = None,
        **uvicorn_options: Any,
    ) -> None:
        host = host or self.DEFAULT_HOST
        port = port or self.DEFAULT_PORT
        path = path or self.DEFAULT_PATH
        log_level = log_level or self.DEFAULT_LOG_LEVEL

        await self._serve(host, port, path, log_level, uvicorn_options)

    async def _serve(self, host: str, port: int, path: str, log_level: str, uvicorn_options: dict[str, Any]) -> None:
        app = self.build_app(path=path)
        config = Config(app=app, host=host, port=port, log_level=log_level, **uvicorn_options)
        server_instance = Server(config)
        await server_instance.serve()

    def _lifespan(self) -> Callable[[Starlette], AbstractAsyncContextManager[None]]:
        """Return an ASGI lifespan hook bound to the server runtime."""

        @asynccontextmanager
        async def _lifespan(
            _app: Starlette,
        ) -> AsyncIterator[None]:  # pragma: no cover - exercised via integration tests
            async with self.server.running():
                yield

        return _lifespan

    @abstractmethod
    def _build_handler(self, path: str) -> ASGIApp: ...

    @abstractmethod
    def _build_routes(self, *, path: str, handler: ASGIApp) -> Iterable[object]: ...


__all__ = ["ASGITransportBase", "ServerRuntimeProtocol"]
