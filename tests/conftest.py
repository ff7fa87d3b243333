# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import os

import pytest

from healthcare_mcp.config import ServerSettings, TransportMode
from tests.helpers import FakeClock


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings_factory(monkeypatch: pytest.MonkeyPatch):
    """Build settings isolated from the developer's environment."""
    for key in list(os.environ):
        if key in {"PORT", "CACHE_TTL"} or key.startswith("HEALTHCARE_MCP_"):
            monkeypatch.delenv(key, raising=False)

    def factory(mode: TransportMode = TransportMode.STATELESS, **overrides) -> ServerSettings:
        return ServerSettings(transport_mode=mode, **overrides)

    return factory
