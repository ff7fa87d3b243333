# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Session/transport lifecycle manager.

The manager is the only writer of the session table.  It mints session ids,
binds client streams to channels, routes inbound JSON-RPC messages to the
protocol handler and tears channels down exactly once, whatever triggered the
close.

One implementation covers all three operating modes
(:class:`~healthcare_mcp.config.TransportMode`):

``stateless``
    :meth:`SessionTransportManager.handle_stateless` opens a throw-away
    channel, posts one message and closes it again.
``session``
    Each session owns its own channel.  Clients learn their id from the
    ``mcp-session-id`` header or the ``endpoint`` event and must send it with
    every POST.
``shared``
    A single channel is created with the manager and reused for all traffic.
    Conversation ids are still minted per session; closing one leaves the
    shared channel open until :meth:`SessionTransportManager.shutdown`.

Per-session state machine: ``OPENING -> OPEN -> CLOSED``.  ``CLOSED`` is
terminal; posting to a closed or never-seen id raises
:class:`~healthcare_mcp.errors.SessionNotFound`.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
import logging
import time
from typing import Union
from uuid import uuid4

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream
from mcp import types

from .session import Channel, ChannelEvent, Session, SessionState
from ..config import TransportMode
from ..errors import REQUEST_TIMEOUT, SessionNotFound, TransportFailure
from ..utils import get_logger


InboundMessage = Union[types.JSONRPCRequest, types.JSONRPCNotification, types.JSONRPCResponse, types.JSONRPCError]
OutboundMessage = Union[types.JSONRPCResponse, types.JSONRPCError]
MessageHandler = Callable[[str, InboundMessage], Awaitable[OutboundMessage | None]]

STATELESS_SESSION_KEY = "stateless"
"""Session key reported to the handler in stateless mode, where ids are throw-away."""

SHARED_CHANNEL_ID = "shared"


class SessionTransportManager:
    """Own the lifecycle of every client-facing channel.

    Args:
        handler: Coroutine invoked as ``handler(session_key, message)`` for
            every posted message; returns the JSON-RPC reply or ``None``.
        mode: Operating mode.
        endpoint: Path announced to clients in the ``endpoint`` event.
        idle_timeout: Close sessions with no attached stream after this many
            idle seconds.  ``None``/``0`` disables expiry.
        request_timeout: Abort a single request after this many seconds with
            a JSON-RPC timeout error.  ``None``/``0`` disables it.
        sweep_interval: Seconds between idle sweeps while :meth:`run` is active.
        write_timeout: Seconds a stream write may stall before the channel is
            considered dead.
        clock: Monotonic time source.
        id_factory: Produces candidate session ids.
    """

    def __init__(
        self,
        handler: MessageHandler,
        *,
        mode: TransportMode = TransportMode.STATELESS,
        endpoint: str = "/mcp",
        idle_timeout: float | None = 1800.0,
        request_timeout: float | None = None,
        sweep_interval: float = 60.0,
        write_timeout: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._handler = handler
        self._mode = TransportMode(mode)
        self._endpoint = endpoint
        self._idle_timeout = idle_timeout or None
        self._request_timeout = request_timeout or None
        self._sweep_interval = sweep_interval
        self._write_timeout = write_timeout
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid4().hex)
        self._logger = logger or get_logger("healthcare_mcp.transport")
        self._sessions: dict[str, Session] = {}
        self._on_close: list[Callable[[Session], None]] = []
        self._shared: Channel | None = None
        if self._mode is TransportMode.SHARED:
            self._shared = self._new_channel(SHARED_CHANNEL_ID)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def mode(self) -> TransportMode:
        return self._mode

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def session_ids(self) -> list[str]:
        return list(self._sessions)

    @property
    def shared_channel(self) -> Channel | None:
        return self._shared

    def get(self, session_id: str | None) -> Session | None:
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def add_close_listener(self, callback: Callable[[Session], None]) -> None:
        """Register *callback* to run after a session is closed."""
        self._on_close.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def open_channel(self) -> tuple[str, Channel]:
        """Create a session with no stream attached; returns ``(session_id, channel)``."""
        session = self._register()
        self._mark_open(session)
        return session.id, session.channel

    async def open_stream(self) -> tuple[str, MemoryObjectReceiveStream[ChannelEvent]]:
        """Create a session and bind the caller's stream to it in one step.

        The handshake event is already queued on the returned receiver.  Used
        for streaming GETs that arrive without a known session id.
        """
        session = self._register()
        try:
            receiver = await self._bind(session)
        except BaseException:
            self.close_channel(session.id)
            raise
        self._mark_open(session)
        return session.id, receiver

    async def attach_stream(self, session_id: str) -> MemoryObjectReceiveStream[ChannelEvent]:
        """Bind a client stream to an existing session.

        Raises:
            SessionNotFound: unknown or closed session.
            ChannelBusy: the channel already has a stream attached.
        """
        session = self._live(session_id)
        return await self._bind(session)

    async def post_message(self, session_id: str, message: InboundMessage) -> OutboundMessage | None:
        """Deliver *message* to the protocol handler on behalf of *session_id*.

        Raises:
            SessionNotFound: the session is unknown, closed, or was closed
                while the message was being handled.
        """
        session = self._live(session_id)
        session.touch(self._clock())
        key = STATELESS_SESSION_KEY if self._mode is TransportMode.STATELESS else session_id

        response: OutboundMessage | None = None
        with anyio.CancelScope() as scope:
            session.track(scope)
            try:
                response = await self._call_handler(key, message)
            finally:
                session.untrack(scope)

        if scope.cancel_called:
            self._logger.info("Session %s closed while a %s was pending", session_id, _describe(message))
            raise SessionNotFound(session_id)
        session.touch(self._clock())
        return response

    def close_channel(self, session_id: str) -> None:
        """Close *session_id* and release its channel.  Idempotent."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.state = SessionState.CLOSED
        session.cancel_pending()

        channel = session.channel
        if channel is not self._shared:
            channel.close()
        elif channel.owner == session_id:
            channel.detach()

        self._logger.info("Closed session %s", session_id)
        for callback in self._on_close:
            callback(session)

    async def handle_stateless(self, message: InboundMessage) -> OutboundMessage | None:
        """Open a throw-away channel, deliver one message, close it."""
        session_id, _ = await self.open_channel()
        try:
            return await self.post_message(session_id, message)
        finally:
            self.close_channel(session_id)

    # ------------------------------------------------------------------
    # Expiry and shutdown
    # ------------------------------------------------------------------

    def reap_idle(self) -> list[str]:
        """Close sessions idle past the timeout; returns the closed ids.

        Sessions with an attached stream are skipped: their lifetime follows
        the connection.
        """
        if self._idle_timeout is None:
            return []
        now = self._clock()
        expired = [
            sid
            for sid, session in self._sessions.items()
            if not session.streaming and session.pending == 0 and session.idle_seconds(now) >= self._idle_timeout
        ]
        for session_id in expired:
            self._logger.info("Expiring idle session %s", session_id)
            self.close_channel(session_id)
        return expired

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Run the idle sweeper for the duration of the context."""
        async with anyio.create_task_group() as tg:
            if self._idle_timeout is not None:
                tg.start_soon(self._sweep_loop)
            try:
                yield
            finally:
                tg.cancel_scope.cancel()
                self.shutdown()

    def shutdown(self) -> None:
        """Close every session and the shared channel."""
        for session_id in list(self._sessions):
            self.close_channel(session_id)
        if self._shared is not None:
            self._shared.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _mint_id(self) -> str:
        while True:
            candidate = self._id_factory()
            if candidate not in self._sessions:
                return candidate
            self._logger.warning("Session id collision on %s; minting another", candidate)

    def _register(self) -> Session:
        session_id = self._mint_id()
        channel = self._shared if self._shared is not None else self._new_channel(session_id)
        now = self._clock()
        session = Session(id=session_id, channel=channel, created_at=now, last_active=now)
        self._sessions[session_id] = session
        return session

    def _mark_open(self, session: Session) -> None:
        session.state = SessionState.OPEN
        self._logger.info("Opened session %s (%s mode)", session.id, self._mode.value)

    def _new_channel(self, channel_id: str) -> Channel:
        return Channel(channel_id, write_timeout=self._write_timeout, logger=self._logger)

    def _live(self, session_id: str | None) -> Session:
        session = self.get(session_id)
        if session is None or session.state is SessionState.CLOSED:
            raise SessionNotFound(session_id)
        return session

    async def _bind(self, session: Session) -> MemoryObjectReceiveStream[ChannelEvent]:
        receiver = session.channel.attach(session.id)
        session.streaming = True
        handshake = ChannelEvent(event="endpoint", data=f"{self._endpoint}?session_id={session.id}")
        try:
            await session.channel.push(handshake)
        except TransportFailure:
            self._logger.warning("Handshake failed for session %s; closing", session.id)
            self.close_channel(session.id)
            raise
        return receiver

    async def _call_handler(self, key: str, message: InboundMessage) -> OutboundMessage | None:
        if self._request_timeout is None:
            return await self._handler(key, message)

        with anyio.move_on_after(self._request_timeout) as timer:
            return await self._handler(key, message)
        if timer.cancelled_caught:
            self._logger.warning("%s timed out after %ss", _describe(message), self._request_timeout)
            if isinstance(message, types.JSONRPCRequest):
                return types.JSONRPCError(
                    jsonrpc="2.0",
                    id=message.id,
                    error=types.ErrorData(code=REQUEST_TIMEOUT, message="Request timed out"),
                )
        return None

    async def _sweep_loop(self) -> None:
        while True:
            await anyio.sleep(self._sweep_interval)
            self.reap_idle()


def _describe(message: InboundMessage) -> str:
    method = getattr(message, "method", None)
    return f"{method!r} request" if method else type(message).__name__


__all__ = [
    "InboundMessage",
    "MessageHandler",
    "OutboundMessage",
    "STATELESS_SESSION_KEY",
    "SessionTransportManager",
]
