# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Streamable HTTP front door.

A single path, differentiated by method:

``POST``
    One JSON-RPC message.  Answered with ``application/json`` or ``202``
    for notifications.
``GET``
    Opens (or attaches to) a session's Server-Sent Events stream.  The
    session id is announced in the ``mcp-session-id`` header and in the
    first ``endpoint`` event.  Not available in stateless mode.
``OPTIONS``
    CORS preflight.

Every other method is answered with ``405``.  Clients identify their session
with the ``mcp-session-id`` header or, failing that, a ``session_id`` query
parameter.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream
from mcp import types
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from ._asgi import ASGITransportBase
from ..manager import InboundMessage, OutboundMessage, SessionTransportManager
from ..protocol import dump_message, parse_message
from ..session import ChannelEvent
from ...config import TransportMode
from ...errors import CONNECTION_CLOSED, ChannelBusy, InvalidMessage, SessionNotFound, TransportFailure
from ...utils import get_logger


if TYPE_CHECKING:
    from starlette.types import Receive, Scope, Send

    from ..core import HealthcareMCPServer


SESSION_HEADER = "mcp-session-id"
SESSION_QUERY_PARAM = "session_id"
PING_COMMENT = b": ping\n\n"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Accept, Authorization, mcp-session-id, mcp-protocol-version",
    "Access-Control-Expose-Headers": "mcp-session-id",
}


def session_id_from(request: Request) -> str | None:
    return request.headers.get(SESSION_HEADER) or request.query_params.get(SESSION_QUERY_PARAM) or None


def _error_response(
    status_code: int, code: int, message: str, *, headers: dict[str, str] | None = None
) -> JSONResponse:
    body = {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": None}
    return JSONResponse(body, status_code=status_code, headers={**CORS_HEADERS, **(headers or {})})


def _is_initialize(message: InboundMessage) -> bool:
    return isinstance(message, types.JSONRPCRequest) and message.method == "initialize"


@dataclass(slots=True)
class StreamableHTTPHandler:
    """ASGI adapter translating HTTP requests into session manager calls."""

    manager: SessionTransportManager
    ping_interval: float = 15.0
    transport_label: str = "Streamable HTTP"
    allowed_scopes: tuple[str, ...] = ("http",)
    logger: logging.Logger = field(default_factory=lambda: get_logger("healthcare_mcp.http"))

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        scope_type = scope.get("type")
        if scope_type not in self.allowed_scopes:
            allowed = ", ".join(self.allowed_scopes)
            message = f"{self.transport_label} only handles ASGI scopes: {allowed} (got {scope_type!r})."
            raise TypeError(message)

        request = Request(scope, receive)
        self.logger.info("%s %s", request.method, request.url.path)
        response = await self.dispatch(request)
        await response(scope, receive, send)

    async def dispatch(self, request: Request) -> Response:
        if request.method == "POST":
            return await self._handle_post(request)
        if request.method == "GET":
            return await self._handle_get(request)
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=CORS_HEADERS)
        return self._method_not_allowed()

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    async def _handle_post(self, request: Request) -> Response:
        try:
            payload = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error_response(400, types.PARSE_ERROR, "Parse error")
        try:
            message = parse_message(payload)
        except InvalidMessage as exc:
            return _error_response(400, types.INVALID_REQUEST, str(exc))

        try:
            if self.manager.mode is TransportMode.STATELESS:
                return self._reply(await self.manager.handle_stateless(message))
            return await self._post_to_session(request, message)
        except TransportFailure as exc:
            self.logger.warning("Transport failure while handling POST: %s", exc)
            return _error_response(500, types.INTERNAL_ERROR, "Internal server error")

    async def _post_to_session(self, request: Request, message: InboundMessage) -> Response:
        session_id = session_id_from(request)
        if session_id is not None:
            try:
                response = await self.manager.post_message(session_id, message)
            except SessionNotFound as exc:
                return _error_response(404, CONNECTION_CLOSED, str(exc))
            return self._reply(response, session_id=session_id)

        if not _is_initialize(message):
            return _error_response(400, types.INVALID_REQUEST, f"Missing {SESSION_HEADER} header")
        return await self._initialize_session(message)

    async def _initialize_session(self, message: InboundMessage) -> Response:
        # The session only survives a successful handshake.
        session_id, _ = await self.manager.open_channel()
        try:
            response = await self.manager.post_message(session_id, message)
        except SessionNotFound as exc:
            return _error_response(404, CONNECTION_CLOSED, str(exc))
        except BaseException:
            self.manager.close_channel(session_id)
            raise
        if isinstance(response, types.JSONRPCError):
            self.logger.info("Initialize failed for session %s; discarding it", session_id)
            self.manager.close_channel(session_id)
            return self._reply(response)
        return self._reply(response, session_id=session_id)

    def _reply(self, response: OutboundMessage | None, *, session_id: str | None = None) -> Response:
        headers = dict(CORS_HEADERS)
        if session_id is not None:
            headers[SESSION_HEADER] = session_id
        if response is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(dump_message(response), headers=headers)

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    async def _handle_get(self, request: Request) -> Response:
        if self.manager.mode is TransportMode.STATELESS:
            return self._method_not_allowed()

        session_id = session_id_from(request)
        try:
            if session_id is not None and session_id in self.manager:
                receiver = await self.manager.attach_stream(session_id)
            else:
                if session_id is not None:
                    self.logger.info("Stream opened for unknown session %s; minting a new one", session_id)
                session_id, receiver = await self.manager.open_stream()
        except ChannelBusy as exc:
            return _error_response(409, CONNECTION_CLOSED, str(exc))
        except SessionNotFound as exc:
            return _error_response(404, CONNECTION_CLOSED, str(exc))
        except TransportFailure as exc:
            self.logger.warning("Could not open stream: %s", exc)
            return _error_response(500, types.INTERNAL_ERROR, "Internal server error")

        headers = {
            **CORS_HEADERS,
            SESSION_HEADER: session_id,
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        }
        return StreamingResponse(
            self._event_stream(session_id, receiver), media_type="text/event-stream", headers=headers
        )

    async def _event_stream(
        self, session_id: str, receiver: MemoryObjectReceiveStream[ChannelEvent]
    ) -> AsyncIterator[bytes]:
        try:
            while True:
                event: ChannelEvent | None = None
                with anyio.move_on_after(self.ping_interval):
                    event = await receiver.receive()
                yield PING_COMMENT if event is None else event.encode()
        except anyio.EndOfStream:
            self.logger.debug("Stream for session %s ended by the server", session_id)
        finally:
            receiver.close()
            self.manager.close_channel(session_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _method_not_allowed(self) -> JSONResponse:
        allowed = "POST, OPTIONS" if self.manager.mode is TransportMode.STATELESS else "GET, POST, OPTIONS"
        return _error_response(405, CONNECTION_CLOSED, "Method not allowed.", headers={"Allow": allowed})


class StreamableHTTPTransport(ASGITransportBase):
    """Serve a :class:`~healthcare_mcp.server.HealthcareMCPServer` over Streamable HTTP."""

    TRANSPORT = ("streamable-http", "Streamable HTTP", "shttp")

    def __init__(self, server: HealthcareMCPServer) -> None:
        super().__init__(server)

    @property
    def server(self) -> HealthcareMCPServer:
        return self._server  # type: ignore[return-value]

    def _build_handler(self, path: str) -> StreamableHTTPHandler:
        return StreamableHTTPHandler(
            manager=self.server.manager,
            ping_interval=self.server.settings.sse_ping_interval,
            transport_label=self.transport_display_name,
            allowed_scopes=self.ALLOWED_SCOPES,
        )

    def _build_routes(self, *, path: str, handler: Any) -> Iterable[Route]:
        return [Route(path, handler)]


__all__ = [
    "CORS_HEADERS",
    "SESSION_HEADER",
    "StreamableHTTPHandler",
    "StreamableHTTPTransport",
    "session_id_from",
]
