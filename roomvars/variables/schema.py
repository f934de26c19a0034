from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from roomvars.errors import SchemaViolationError
from roomvars.tiled import TiledMap, TiledObject

logger = logging.getLogger(__name__)

VARIABLE_OBJECT_TYPE = "variable"


@dataclass(frozen=True, slots=True)
class VariableDefinition:
    name: str
    default_value: str | None = None
    persist: bool = False
    readable_by: str | None = None
    writable_by: str | None = None


class VariableSchema(Mapping[str, VariableDefinition]):
    """Read-only view over the variables a map declares.

    Built once when the room starts. There is no way to add, remove
    or replace a definition afterwards: the same clients that set values must not
    be able to rewrite the rules guarding them.
    """

    __slots__ = ("_definitions",)

    def __init__(self, definitions: Mapping[str, VariableDefinition]) -> None:
        self._definitions: Mapping[str, VariableDefinition] = MappingProxyType(dict(definitions))

    def __getitem__(self, name: str) -> VariableDefinition:
        return self._definitions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def defaults(self) -> dict[str, str]:
        return {name: d.default_value for name, d in self._definitions.items() if d.default_value is not None}


def _integral_floats_as_int(value: Any) -> Any:
    # JSON clients write 2.0 as 2.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _integral_floats_as_int(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_integral_floats_as_int(v) for v in value]
    return value


def encode_default(value: Any) -> str:
    # Compact form, the same text a JSON client would send when writing the value.
    return json.dumps(_integral_floats_as_int(value), separators=(",", ":"), ensure_ascii=False)


def _string_tag(obj: TiledObject, prop_name: str, value: Any) -> str | None:
    if not isinstance(value, str):
        raise SchemaViolationError(f'The {prop_name} property of variable "{obj.name}" must be a string')
    return value or None


def variable_from_object(obj: TiledObject) -> VariableDefinition:
    default_value: str | None = None
    persist = False
    readable_by: str | None = None
    writable_by: str | None = None

    for prop in obj.properties:
        value = prop.value
        if prop.name == "default":
            default_value = encode_default(value)
        elif prop.name == "persist":
            if not isinstance(value, bool):
                raise SchemaViolationError(f'The persist property of variable "{obj.name}" must be a boolean')
            persist = value
        elif prop.name == "writableBy":
            writable_by = _string_tag(obj, "writableBy", value)
        elif prop.name == "readableBy":
            readable_by = _string_tag(obj, "readableBy", value)

    return VariableDefinition(
        name=obj.name,
        default_value=default_value,
        persist=persist,
        readable_by=readable_by,
        writable_by=writable_by,
    )


def build_variable_schema(tiled_map: TiledMap) -> VariableSchema:
    """Collect every "variable" object of the map's object layers.

    Objects generated from Tiled templates are skipped: their properties live in
    a separate file we never see. When two objects share a name the later one wins.
    """

    definitions: dict[str, VariableDefinition] = {}
    for layer in tiled_map.object_layers():
        for obj in layer.objects:
            if obj.type != VARIABLE_OBJECT_TYPE:
                continue
            if obj.template:
                logger.warning(
                    'Variable object "%s" in layer "%s" uses a Tiled template; templates are not supported, skipping.',
                    obj.name,
                    layer.name,
                )
                continue
            if obj.name in definitions:
                logger.debug('Variable "%s" is declared more than once; the last declaration wins.', obj.name)
            definitions[obj.name] = variable_from_object(obj)
    return VariableSchema(definitions)
