# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest
from pydantic import ValidationError

from healthcare_mcp.config import DEFAULT_CACHE_TTL, ServerSettings, TransportMode


def test_defaults(settings_factory) -> None:
    settings = settings_factory()

    assert settings.port == 8000
    assert settings.host == "0.0.0.0"
    assert settings.path == "/mcp"
    assert settings.transport_mode is TransportMode.STATELESS
    assert settings.cache_ttl == DEFAULT_CACHE_TTL
    assert settings.request_timeout == 120


def test_bare_port_and_cache_ttl_names_are_honoured(settings_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    settings_factory()
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setenv("CACHE_TTL", "60")
    monkeypatch.setenv("HEALTHCARE_MCP_TRANSPORT_MODE", "shared")

    settings = ServerSettings()

    assert settings.port == 9100
    assert settings.cache_ttl == 60
    assert settings.transport_mode is TransportMode.SHARED


@pytest.mark.parametrize("raw", ["abc", "0", "-5", ""])
def test_invalid_cache_ttl_falls_back_to_default(settings_factory, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    settings_factory()
    monkeypatch.setenv("CACHE_TTL", raw)

    assert ServerSettings().cache_ttl == DEFAULT_CACHE_TTL


def test_path_is_normalized(settings_factory) -> None:
    assert settings_factory(path="mcp").path == "/mcp"


def test_unknown_mode_rejected(settings_factory, monkeypatch: pytest.MonkeyPatch) -> None:
    settings_factory()
    monkeypatch.setenv("HEALTHCARE_MCP_TRANSPORT_MODE", "broadcast")

    with pytest.raises(ValidationError):
        ServerSettings()
