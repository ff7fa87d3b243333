# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Shared test helpers."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import anyio
from mcp import types

from healthcare_mcp.cache import TTLCache
from healthcare_mcp.dispatcher import Dispatcher
from healthcare_mcp.registry import FieldSpec, ToolDescriptor, ToolRegistry
from healthcare_mcp.usage import UsageLedger


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingCollaborator:
    """Collaborator that returns a canned result and remembers every call."""

    def __init__(self, result: Any = None) -> None:
        self.result = {"ok": True} if result is None else result
        self.calls: list[dict[str, Any]] = []

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        self.calls.append(dict(arguments))
        await anyio.lowlevel.checkpoint()
        return self.result


class FailingCollaborator:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc
        self.calls = 0

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        self.calls += 1
        raise self.exc


class BlockingCollaborator:
    """Collaborator that parks until :attr:`release` is set."""

    def __init__(self) -> None:
        self.started = anyio.Event()
        self.release = anyio.Event()
        self.calls = 0

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return {"released": True}


SEARCH_DESCRIPTOR = ToolDescriptor(
    name="search",
    description="Test search",
    fields={
        "query": FieldSpec("string", required=True),
        "max_results": FieldSpec("integer", default=5),
    },
)


def build_dispatcher(
    collaborators: Mapping[str, Any] | None = None,
    *,
    cache: TTLCache | None = None,
    ledger: UsageLedger | None = None,
) -> Dispatcher:
    """Dispatcher over a registry with one ``search`` descriptor per collaborator name."""
    registry = ToolRegistry()
    for name, collaborator in (collaborators or {}).items():
        descriptor = ToolDescriptor(name=name, description=f"Test {name}", fields=SEARCH_DESCRIPTOR.fields)
        registry.register(descriptor, collaborator)
    registry.freeze()
    return Dispatcher(
        registry,
        cache=cache if cache is not None else TTLCache(60),
        ledger=ledger if ledger is not None else UsageLedger(),
    )


def request(method: str, params: dict[str, Any] | None = None, *, id: int | str = 1) -> types.JSONRPCRequest:
    return types.JSONRPCRequest(jsonrpc="2.0", id=id, method=method, params=params)


def initialize_payload(id: int = 1, version: str = types.LATEST_PROTOCOL_VERSION) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": id,
        "method": "initialize",
        "params": {
            "protocolVersion": version,
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "0.0.1"},
        },
    }


def tool_text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text
