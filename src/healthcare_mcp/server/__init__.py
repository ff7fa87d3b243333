# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Public server-side surface for healthcare-mcp.

The heavy lifting lives in :mod:`healthcare_mcp.server.manager`; this module
re-exports the primitives that host applications are expected to import.
"""

from __future__ import annotations

from .core import HealthcareMCPServer
from .manager import SessionTransportManager
from .protocol import ProtocolHandler, parse_message
from .session import Channel, ChannelEvent, Session, SessionState


__all__ = [
    "Channel",
    "ChannelEvent",
    "HealthcareMCPServer",
    "ProtocolHandler",
    "Session",
    "SessionState",
    "SessionTransportManager",
    "parse_message",
]
