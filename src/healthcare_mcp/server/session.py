# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Session and channel primitives owned by the transport manager."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from ..errors import ChannelBusy, TransportFailure


class SessionState(str, Enum):
    OPENING = "opening"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class ChannelEvent:
    """One server-to-client event, rendered as a Server-Sent Event."""

    event: str
    data: str
    id: str | None = None

    def encode(self) -> bytes:
        lines = []
        if self.id is not None:
            lines.append(f"id: {self.id}")
        lines.append(f"event: {self.event}")
        lines.extend(f"data: {line}" for line in (self.data.splitlines() or [""]))
        return ("\n".join(lines) + "\n\n").encode("utf-8")


class Channel:
    """Duplex handle between the server and one client connection.

    Server-to-client events are written into the buffer of the currently
    attached stream.  Only one stream may be attached at a time and each
    attachment gets a fresh buffer, so detaching ends that stream promptly
    without leaking events to the next one.  Events pushed while nothing is
    attached are dropped: there is no connection to deliver them to.
    """

    def __init__(
        self,
        channel_id: str,
        *,
        buffer_size: int = 64,
        write_timeout: float = 5.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.id = channel_id
        self._buffer_size = buffer_size
        self._write_timeout = write_timeout
        self._logger = logger or logging.getLogger("healthcare_mcp.channel")
        self._stream: MemoryObjectSendStream[ChannelEvent] | None = None
        self._owner: str | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def attached(self) -> bool:
        return self._owner is not None

    @property
    def owner(self) -> str | None:
        """Session id whose stream is currently attached, if any."""
        return self._owner

    def attach(self, session_id: str) -> MemoryObjectReceiveStream[ChannelEvent]:
        """Bind a stream for *session_id* and return the end it should drain."""
        if self._closed:
            raise TransportFailure(f"Channel {self.id} is closed")
        if self._owner is not None:
            raise ChannelBusy(session_id)
        send, receive = anyio.create_memory_object_stream(max_buffer_size=self._buffer_size)
        self._stream = send
        self._owner = session_id
        return receive

    def detach(self) -> None:
        """Unbind the current stream; its reader sees end-of-stream."""
        if self._stream is not None:
            self._stream.close()
        self._stream = None
        self._owner = None

    async def push(self, event: ChannelEvent) -> None:
        """Queue *event* for the attached stream.

        Raises:
            TransportFailure: the channel is closed, or the client stopped
                draining events for longer than the write timeout.
        """
        if self._closed:
            raise TransportFailure(f"Channel {self.id} is closed")
        if self._stream is None:
            self._logger.debug("Channel %s has no stream attached; dropping %s event", self.id, event.event)
            return
        try:
            with anyio.fail_after(self._write_timeout):
                await self._stream.send(event)
        except TimeoutError as exc:
            raise TransportFailure(f"Channel {self.id} stalled writing {event.event} event") from exc
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as exc:
            raise TransportFailure(f"Channel {self.id} lost its stream") from exc

    def close(self) -> None:
        """Release the channel and end any attached stream.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.detach()

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("attached" if self.attached else "idle")
        return f"<Channel {self.id} {state}>"


@dataclass(eq=False, slots=True)
class Session:
    """A logical conversation bound to at most one live channel."""

    id: str
    channel: Channel
    created_at: float
    last_active: float
    state: SessionState = SessionState.OPENING
    streaming: bool = False
    _inflight: set[anyio.CancelScope] = field(default_factory=set, repr=False)

    def touch(self, now: float) -> None:
        self.last_active = now

    def idle_seconds(self, now: float) -> float:
        return max(0.0, now - self.last_active)

    @property
    def pending(self) -> int:
        return len(self._inflight)

    def track(self, scope: anyio.CancelScope) -> None:
        self._inflight.add(scope)

    def untrack(self, scope: anyio.CancelScope) -> None:
        self._inflight.discard(scope)

    def cancel_pending(self) -> None:
        for scope in list(self._inflight):
            scope.cancel()
        self._inflight.clear()


__all__ = ["Channel", "ChannelEvent", "Session", "SessionState"]
