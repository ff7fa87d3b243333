# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""JSON-RPC method table for the MCP surface this server implements.

Only the tools capability is advertised.  The handler answers ``initialize``,
``ping``, ``tools/list`` and ``tools/call``; notifications and client
responses are accepted and produce no reply.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
import logging
from typing import Any

from mcp import types
from mcp.shared.version import SUPPORTED_PROTOCOL_VERSIONS
from pydantic import BaseModel, ValidationError

from .manager import InboundMessage, OutboundMessage
from ..dispatcher import Dispatcher
from ..errors import InvalidMessage
from ..utils import get_logger


MethodHandler = Callable[[str, Mapping[str, Any] | None], Awaitable[BaseModel]]


def parse_message(payload: Any) -> InboundMessage:
    """Classify a decoded JSON body as one JSON-RPC message.

    Raises:
        InvalidMessage: batches, non-objects, a wrong ``jsonrpc`` version or a
            shape that matches none of the four message kinds.
    """
    if isinstance(payload, list):
        raise InvalidMessage("Batch requests are not supported")
    if not isinstance(payload, dict):
        raise InvalidMessage("Expected a JSON-RPC object")
    if payload.get("jsonrpc") != "2.0":
        raise InvalidMessage("Expected jsonrpc version 2.0")

    model: type[BaseModel]
    if "method" in payload:
        model = types.JSONRPCRequest if "id" in payload else types.JSONRPCNotification
    elif "error" in payload:
        model = types.JSONRPCError
    elif "result" in payload:
        model = types.JSONRPCResponse
    else:
        raise InvalidMessage("Message has neither a method nor a result")

    try:
        return model.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as exc:
        raise InvalidMessage(f"Invalid {model.__name__}: {exc.error_count()} validation error(s)") from exc


def dump_message(message: OutboundMessage) -> dict[str, Any]:
    return message.model_dump(by_alias=True, mode="json", exclude_none=True)


class ProtocolHandler:
    """Answer JSON-RPC requests on behalf of a session.

    Called by :class:`~healthcare_mcp.server.manager.SessionTransportManager`
    as ``handler(session_key, message)``.  Never raises for a well-formed
    message: failures become JSON-RPC error responses.
    """

    def __init__(
        self,
        server_info: types.Implementation,
        dispatcher: Dispatcher,
        *,
        instructions: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._server_info = server_info
        self._dispatcher = dispatcher
        self._instructions = instructions
        self._logger = logger or get_logger("healthcare_mcp.protocol")
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    async def __call__(self, session_key: str, message: InboundMessage) -> OutboundMessage | None:
        return await self.handle(session_key, message)

    async def handle(self, session_key: str, message: InboundMessage) -> OutboundMessage | None:
        if isinstance(message, types.JSONRPCNotification):
            self._logger.debug("Notification %s from %s", message.method, session_key)
            return None
        if not isinstance(message, types.JSONRPCRequest):
            # Replies to server-initiated requests; this server sends none.
            self._logger.debug("Ignoring %s from %s", type(message).__name__, session_key)
            return None

        method = self._methods.get(message.method)
        if method is None:
            return _error(message, types.METHOD_NOT_FOUND, f"Method not found: {message.method}")

        try:
            result = await method(session_key, message.params)
        except ValidationError as exc:
            return _error(message, types.INVALID_PARAMS, f"Invalid params for {message.method}: {exc.error_count()} error(s)")
        except Exception:
            self._logger.exception("Unhandled error in %s", message.method)
            return _error(message, types.INTERNAL_ERROR, "Internal server error")

        return types.JSONRPCResponse(
            jsonrpc="2.0",
            id=message.id,
            result=result.model_dump(by_alias=True, mode="json", exclude_none=True),
        )

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    async def _initialize(self, session_key: str, params: Mapping[str, Any] | None) -> types.InitializeResult:
        request = types.InitializeRequestParams.model_validate(params or {})
        requested = str(request.protocolVersion)
        negotiated = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION
        self._logger.info(
            "Initialize from %s (%s %s), protocol %s",
            session_key,
            request.clientInfo.name,
            request.clientInfo.version,
            negotiated,
        )
        return types.InitializeResult(
            protocolVersion=negotiated,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability(listChanged=False)),
            serverInfo=self._server_info,
            instructions=self._instructions,
        )

    async def _ping(self, session_key: str, params: Mapping[str, Any] | None) -> types.EmptyResult:
        return types.EmptyResult()

    async def _list_tools(self, session_key: str, params: Mapping[str, Any] | None) -> types.ListToolsResult:
        return types.ListToolsResult(tools=self._dispatcher.registry.list_tools())

    async def _call_tool(self, session_key: str, params: Mapping[str, Any] | None) -> types.CallToolResult:
        request = types.CallToolRequestParams.model_validate(params or {})
        return await self._dispatcher.handle(request.name, request.arguments, session_id=session_key)


def _error(request: types.JSONRPCRequest, code: int, message: str) -> types.JSONRPCError:
    return types.JSONRPCError(jsonrpc="2.0", id=request.id, error=types.ErrorData(code=code, message=message))


__all__ = ["ProtocolHandler", "dump_message", "parse_message"]
