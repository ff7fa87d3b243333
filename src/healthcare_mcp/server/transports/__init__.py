# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Transport adapters for the healthcare MCP server.

These thin wrappers keep the HTTP surface separate from the session manager
so the manager can be exercised without a network listener.
"""

from __future__ import annotations

from ._asgi import ASGITransportBase
from .streamable_http import StreamableHTTPHandler, StreamableHTTPTransport

__all__ = [
    "ASGITransportBase",
    "StreamableHTTPHandler",
    "StreamableHTTPTransport",
]
