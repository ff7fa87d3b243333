# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Tool registry: operation name -> descriptor + collaborator.

The registry is populated once at startup and then frozen.  Adding or
removing a tool is a data change here; the dispatcher only ever performs a
single table lookup.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
import inspect
from types import MappingProxyType
from typing import Any, Literal, Protocol, runtime_checkable

from mcp import types

from .errors import InvalidArguments


FieldType = Literal["string", "number", "integer", "boolean"]

_NO_DEFAULT: Any = object()


@runtime_checkable
class Collaborator(Protocol):
    """External tool adapter invoked by the dispatcher.

    ``execute`` receives arguments already validated against the tool's
    descriptor and returns a JSON-serializable result, or raises.
    """

    async def execute(self, arguments: Mapping[str, Any]) -> Any: ...


class FunctionCollaborator:
    """Adapt a plain (sync or async) function to :class:`Collaborator`."""

    def __init__(self, fn: Callable[..., Any]) -> None:
        self._fn = fn

    async def execute(self, arguments: Mapping[str, Any]) -> Any:
        result = self._fn(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"FunctionCollaborator({getattr(self._fn, '__name__', self._fn)!r})"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Schema for one tool argument."""

    type: FieldType
    required: bool = False
    default: Any = _NO_DEFAULT
    enum: tuple[Any, ...] | None = None
    description: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT

    def json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.has_default:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        return schema

    def coerce(self, name: str, value: Any) -> Any:
        if self.type == "string":
            ok = isinstance(value, str)
        elif self.type == "boolean":
            ok = isinstance(value, bool)
        elif self.type == "integer":
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            ok = isinstance(value, int) and not isinstance(value, bool)
        else:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not ok:
            raise InvalidArguments(f"Argument {name!r} must be of type {self.type}, got {type(value).__name__}")
        if self.enum is not None and value not in self.enum:
            allowed = ", ".join(repr(item) for item in self.enum)
            raise InvalidArguments(f"Argument {name!r} must be one of {allowed}")
        return value


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Declarative description of one operation."""

    name: str
    description: str
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)
    cacheable: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: spec.json_schema() for name, spec in self.fields.items()},
        }
        required = [name for name, spec in self.fields.items() if spec.required]
        if required:
            schema["required"] = required
        return schema

    def to_tool(self) -> types.Tool:
        return types.Tool(name=self.name, description=self.description, inputSchema=self.input_schema())

    def bind(self, arguments: Mapping[str, Any] | None) -> dict[str, Any]:
        """Validate *arguments* and return them normalized.

        Defaults are filled in, ``None`` counts as absent and keys the schema
        does not declare are dropped, so equivalent calls normalize to the
        same mapping (and the same cache key).
        """
        supplied = dict(arguments or {})
        bound: dict[str, Any] = {}
        for name, spec in self.fields.items():
            value = supplied.get(name)
            if value is None:
                if spec.required:
                    raise InvalidArguments(f"Missing required argument {name!r}")
                if spec.has_default:
                    bound[name] = spec.default
                continue
            bound[name] = spec.coerce(name, value)
        return bound


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    descriptor: ToolDescriptor
    collaborator: Collaborator

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    """Static mapping from operation name to :class:`RegisteredTool`."""

    def __init__(self, entries: Iterable[tuple[ToolDescriptor, Collaborator]] = ()) -> None:
        self._tools: dict[str, RegisteredTool] = {}
        self._frozen = False
        for descriptor, collaborator in entries:
            self.register(descriptor, collaborator)

    def register(self, descriptor: ToolDescriptor, collaborator: Collaborator | Callable[..., Any]) -> RegisteredTool:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen; register tools before the server starts")
        if descriptor.name in self._tools:
            raise ValueError(f"Duplicate tool name: {descriptor.name}")
        if not isinstance(collaborator, Collaborator):
            collaborator = FunctionCollaborator(collaborator)
        entry = RegisteredTool(descriptor=descriptor, collaborator=collaborator)
        self._tools[descriptor.name] = entry
        return entry

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    @property
    def names(self) -> list[str]:
        return sorted(self._tools)

    def list_tools(self) -> list[types.Tool]:
        return [entry.descriptor.to_tool() for entry in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[RegisteredTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)


__all__ = [
    "Collaborator",
    "FieldSpec",
    "FunctionCollaborator",
    "RegisteredTool",
    "ToolDescriptor",
    "ToolRegistry",
]
