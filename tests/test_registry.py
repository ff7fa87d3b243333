# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

from __future__ import annotations

import pytest

from healthcare_mcp.errors import InvalidArguments
from healthcare_mcp.registry import FieldSpec, FunctionCollaborator, ToolDescriptor, ToolRegistry
from tests.helpers import RecordingCollaborator


DESCRIPTOR = ToolDescriptor(
    name="fda_drug_lookup",
    description="Look up drug information",
    fields={
        "drug_name": FieldSpec("string", required=True),
        "search_type": FieldSpec("string", default="general", enum=("general", "label", "adverse_events")),
        "max_results": FieldSpec("integer", default=10),
        "ratio": FieldSpec("number"),
        "open_access": FieldSpec("boolean", default=False),
    },
)


def test_input_schema_lists_required_fields_and_defaults() -> None:
    schema = DESCRIPTOR.input_schema()

    assert schema["type"] == "object"
    assert schema["required"] == ["drug_name"]
    assert schema["properties"]["search_type"] == {
        "type": "string",
        "enum": ["general", "label", "adverse_events"],
        "default": "general",
    }


def test_to_tool_round_trips_into_mcp_tool() -> None:
    tool = DESCRIPTOR.to_tool()
    assert tool.name == "fda_drug_lookup"
    assert tool.inputSchema["required"] == ["drug_name"]


def test_bind_fills_defaults_and_drops_unknown_keys() -> None:
    bound = DESCRIPTOR.bind({"drug_name": "aspirin", "unexpected": 1, "ratio": None})

    assert bound == {"drug_name": "aspirin", "search_type": "general", "max_results": 10, "open_access": False}


def test_bind_accepts_integral_floats_for_integers() -> None:
    assert DESCRIPTOR.bind({"drug_name": "x", "max_results": 3.0})["max_results"] == 3


@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"drug_name": 5},
        {"drug_name": "x", "search_type": "everything"},
        {"drug_name": "x", "max_results": 2.5},
        {"drug_name": "x", "ratio": True},
        {"drug_name": "x", "open_access": "yes"},
    ],
)
def test_bind_rejects_invalid_arguments(arguments: dict) -> None:
    with pytest.raises(InvalidArguments):
        DESCRIPTOR.bind(arguments)


def test_descriptor_fields_are_read_only() -> None:
    with pytest.raises(TypeError):
        DESCRIPTOR.fields["extra"] = FieldSpec("string")  # type: ignore[index]


def test_register_wraps_plain_functions() -> None:
    registry = ToolRegistry()
    entry = registry.register(DESCRIPTOR, lambda **kwargs: kwargs)

    assert isinstance(entry.collaborator, FunctionCollaborator)
    assert "fda_drug_lookup" in registry
    assert registry.names == ["fda_drug_lookup"]


def test_duplicate_names_rejected() -> None:
    registry = ToolRegistry([(DESCRIPTOR, RecordingCollaborator())])
    with pytest.raises(ValueError):
        registry.register(DESCRIPTOR, RecordingCollaborator())


def test_frozen_registry_rejects_registration() -> None:
    registry = ToolRegistry()
    registry.freeze()

    assert registry.frozen
    with pytest.raises(RuntimeError):
        registry.register(DESCRIPTOR, RecordingCollaborator())


@pytest.mark.anyio
async def test_function_collaborator_awaits_coroutines() -> None:
    async def double(value: int) -> int:
        return value * 2

    assert await FunctionCollaborator(double).execute({"value": 4}) == 8
    assert await FunctionCollaborator(lambda value: value + 1).execute({"value": 4}) == 5
