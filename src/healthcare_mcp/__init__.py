# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Healthcare tool catalog served over the Model Context Protocol."""

from __future__ import annotations

__version__ = "1.0.0"

from .cache import TTLCache
from .config import ServerSettings, TransportMode, get_settings
from .dispatcher import Dispatcher
from .errors import (
    ChannelBusy,
    CollaboratorFailure,
    HealthcareMCPError,
    InvalidArguments,
    InvalidMessage,
    SessionNotFound,
    TransportFailure,
    UnknownOperation,
)
from .registry import FieldSpec, ToolDescriptor, ToolRegistry
from .server import HealthcareMCPServer, SessionTransportManager
from .usage import UsageLedger


__all__ = [
    "__version__",
    "ChannelBusy",
    "CollaboratorFailure",
    "Dispatcher",
    "FieldSpec",
    "HealthcareMCPError",
    "HealthcareMCPServer",
    "InvalidArguments",
    "InvalidMessage",
    "ServerSettings",
    "SessionNotFound",
    "SessionTransportManager",
    "TTLCache",
    "ToolDescriptor",
    "ToolRegistry",
    "TransportFailure",
    "TransportMode",
    "UnknownOperation",
    "UsageLedger",
    "get_settings",
]
