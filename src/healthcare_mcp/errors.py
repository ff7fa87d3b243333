# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Error taxonomy shared by the transport, dispatch and tool layers.

Every error here is caught at the manager, dispatcher or front-door boundary
and converted into a structured JSON-RPC or HTTP response.  None of them is
allowed to reach the ASGI server.
"""

from __future__ import annotations


# JSON-RPC codes in the implementation-defined server error range.
CONNECTION_CLOSED = -32000
REQUEST_TIMEOUT = -32001


class HealthcareMCPError(Exception):
    """Base class for all framework errors."""


class SessionNotFound(HealthcareMCPError, LookupError):
    """An inbound message referenced a session with no live channel."""

    def __init__(self, session_id: str | None) -> None:
        super().__init__(f"Session not found: {session_id!r}")
        self.session_id = session_id


class ChannelBusy(HealthcareMCPError):
    """A second stream tried to bind to a channel that already has one."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} already has an active stream")
        self.session_id = session_id


class UnknownOperation(HealthcareMCPError, LookupError):
    """Dispatch requested an operation that is not in the registry."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Unknown tool: {operation}")
        self.operation = operation


class InvalidArguments(HealthcareMCPError, ValueError):
    """Tool arguments did not satisfy the descriptor's input schema."""


class CollaboratorFailure(HealthcareMCPError):
    """The external tool adapter raised or reported an error."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class TransportFailure(HealthcareMCPError):
    """Writing to (or reading from) a client stream failed."""


class InvalidMessage(HealthcareMCPError, ValueError):
    """The request body is not a single well-formed JSON-RPC message."""


__all__ = [
    "CONNECTION_CLOSED",
    "REQUEST_TIMEOUT",
    "ChannelBusy",
    "CollaboratorFailure",
    "HealthcareMCPError",
    "InvalidArguments",
    "InvalidMessage",
    "SessionNotFound",
    "TransportFailure",
    "UnknownOperation",
]
