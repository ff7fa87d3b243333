# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Streamable HTTP front door tests."""

from __future__ import annotations

from collections.abc import Callable
import json
from typing import Any

import anyio
import httpx
import pytest
from starlette.types import ASGIApp

from healthcare_mcp.config import TransportMode
from healthcare_mcp.registry import ToolRegistry
from healthcare_mcp.server import HealthcareMCPServer
from healthcare_mcp.tools.calculator import BMI_DESCRIPTOR, calculate_bmi
from tests.helpers import SEARCH_DESCRIPTOR, RecordingCollaborator, initialize_payload


def build_server(settings_factory, mode: TransportMode, **overrides: Any) -> HealthcareMCPServer:
    registry = ToolRegistry()
    registry.register(BMI_DESCRIPTOR, calculate_bmi)
    registry.register(SEARCH_DESCRIPTOR, RecordingCollaborator({"hits": 3}))
    return HealthcareMCPServer(settings=settings_factory(mode, **overrides), registry=registry)


def client_for(server: HealthcareMCPServer) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=server.streamable_http_app())
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


def call_bmi(id: int = 2) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": id,
        "method": "tools/call",
        "params": {"name": "calculate_bmi", "arguments": {"height_meters": 1.8, "weight_kg": 80}},
    }


async def stream_until(
    app: ASGIApp, done: Callable[[bytes], bool], *, query: bytes = b"", headers: list[tuple[bytes, bytes]] | None = None
) -> tuple[dict[str, Any], bytes]:
    """Drive a streaming GET until *done* accepts the body, then disconnect."""
    start: dict[str, Any] = {}
    body = bytearray()
    finished = anyio.Event()

    async def receive() -> dict[str, Any]:
        await finished.wait()
        return {"type": "http.disconnect"}

    async def send(message: dict[str, Any]) -> None:
        if message["type"] == "http.response.start":
            start.update(message)
        elif message["type"] == "http.response.body":
            body.extend(message.get("body", b""))
            if done(bytes(body)) or not message.get("more_body", False):
                finished.set()

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": "/mcp",
        "raw_path": b"/mcp",
        "root_path": "",
        "query_string": query,
        "headers": [(b"host", b"testserver"), (b"accept", b"text/event-stream"), *(headers or [])],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    with anyio.fail_after(5):
        await app(scope, receive, send)
    return start, bytes(body)


def header(start: dict[str, Any], name: bytes) -> str | None:
    for key, value in start.get("headers", []):
        if key.lower() == name:
            return value.decode()
    return None


# ---------------------------------------------------------------------------
# Stateless mode
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_stateless_bmi_call_returns_success_envelope(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        resp = await client.post("/mcp", json=call_bmi())

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/json")
    result = resp.json()["result"]
    assert result["isError"] is False
    assert json.loads(result["content"][0]["text"])["bmi"] == pytest.approx(24.69)
    assert len(server.manager) == 0
    assert server.ledger.summarize("stateless") == {"calculate_bmi": 1}


@pytest.mark.anyio
async def test_stateless_rejects_streaming_and_delete(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        get = await client.get("/mcp")
        delete = await client.delete("/mcp")
        put = await client.put("/mcp", json={})

    for resp in (get, delete, put):
        assert resp.status_code == 405
        assert resp.json()["error"]["message"] == "Method not allowed."
    assert get.headers["allow"] == "POST, OPTIONS"


@pytest.mark.anyio
async def test_options_preflight(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        resp = await client.options("/mcp")

    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert "mcp-session-id" in resp.headers["access-control-allow-headers"]


@pytest.mark.anyio
async def test_unknown_path_is_404(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        resp = await client.post("/elsewhere", json=call_bmi())

    assert resp.status_code == 404


@pytest.mark.anyio
async def test_malformed_bodies(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        not_json = await client.post("/mcp", content=b"{not json", headers={"content-type": "application/json"})
        batch = await client.post("/mcp", json=[call_bmi(1), call_bmi(2)])

    assert not_json.status_code == 400
    assert not_json.json()["error"]["code"] == -32700
    assert batch.status_code == 400
    assert batch.json()["error"]["code"] == -32600


@pytest.mark.anyio
async def test_notification_is_accepted(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.STATELESS)

    async with client_for(server) as client:
        resp = await client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})

    assert resp.status_code == 202
    assert resp.content == b""


# ---------------------------------------------------------------------------
# Session mode
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_initialize_mints_session_and_later_posts_reuse_it(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)

    async with client_for(server) as client:
        init = await client.post("/mcp", json=initialize_payload())
        session_id = init.headers["mcp-session-id"]
        call = await client.post("/mcp", json=call_bmi(), headers={"mcp-session-id": session_id})
        by_query = await client.post(f"/mcp?session_id={session_id}", json={"jsonrpc": "2.0", "id": 3, "method": "ping"})

    assert init.status_code == 200
    assert init.json()["result"]["serverInfo"]["name"] == "healthcare-mcp"
    assert call.json()["result"]["isError"] is False
    assert call.headers["mcp-session-id"] == session_id
    assert by_query.json()["result"] == {}
    assert server.ledger.summarize(session_id) == {"calculate_bmi": 1}


@pytest.mark.anyio
@pytest.mark.parametrize("mode", [TransportMode.SESSION, TransportMode.SHARED])
async def test_failed_initialize_discards_its_session(settings_factory, mode: TransportMode) -> None:
    server = build_server(settings_factory, mode)

    async with client_for(server) as client:
        resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})

    assert resp.status_code == 200
    assert resp.json()["error"]["code"] == -32602
    assert "mcp-session-id" not in resp.headers
    assert len(server.manager) == 0


@pytest.mark.anyio
async def test_post_to_unknown_session_is_404_and_creates_nothing(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)

    async with client_for(server) as client:
        resp = await client.post("/mcp", json=call_bmi(), headers={"mcp-session-id": "never-opened"})

    assert resp.status_code == 404
    assert "never-opened" in resp.json()["error"]["message"]
    assert len(server.manager) == 0


@pytest.mark.anyio
async def test_post_without_session_id_is_400(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)

    async with client_for(server) as client:
        resp = await client.post("/mcp", json=call_bmi())

    assert resp.status_code == 400
    assert len(server.manager) == 0


@pytest.mark.anyio
async def test_get_announces_session_and_closes_it_on_disconnect(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)
    app = server.streamable_http_app()

    start, body = await stream_until(app, lambda data: b"event: endpoint" in data)

    assert start["status"] == 200
    session_id = header(start, b"mcp-session-id")
    assert session_id
    assert header(start, b"content-type").startswith("text/event-stream")
    assert f"data: /mcp?session_id={session_id}".encode() in body
    assert session_id not in server.manager


@pytest.mark.anyio
async def test_get_with_unknown_session_mints_a_fresh_one(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)
    app = server.streamable_http_app()

    start, _ = await stream_until(
        app, lambda data: b"event: endpoint" in data, headers=[(b"mcp-session-id", b"client-chosen")]
    )

    assert header(start, b"mcp-session-id") not in (None, "client-chosen")


@pytest.mark.anyio
async def test_get_emits_keepalive_pings(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION, sse_ping_interval=0.01)
    app = server.streamable_http_app()

    _, body = await stream_until(app, lambda data: b": ping" in data)

    assert b": ping\n\n" in body


@pytest.mark.anyio
async def test_second_stream_on_a_session_is_409(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)
    session_id, _ = await server.manager.open_stream()

    async with client_for(server) as client:
        resp = await client.get("/mcp", headers={"mcp-session-id": session_id})

    assert resp.status_code == 409
    assert session_id in server.manager


@pytest.mark.anyio
async def test_delete_is_405_in_session_mode(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SESSION)

    async with client_for(server) as client:
        resp = await client.delete("/mcp")

    assert resp.status_code == 405
    assert resp.headers["allow"] == "GET, POST, OPTIONS"


# ---------------------------------------------------------------------------
# Shared mode
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_shared_mode_multiplexes_sessions(settings_factory) -> None:
    server = build_server(settings_factory, TransportMode.SHARED)

    async with client_for(server) as client:
        first = (await client.post("/mcp", json=initialize_payload(1))).headers["mcp-session-id"]
        second = (await client.post("/mcp", json=initialize_payload(2))).headers["mcp-session-id"]
        resp = await client.post("/mcp", json=call_bmi(), headers={"mcp-session-id": second})

    assert first != second
    assert server.manager.get(first).channel is server.manager.get(second).channel
    assert resp.json()["result"]["isError"] is False
