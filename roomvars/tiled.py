"""Subset of the Tiled JSON map format read when building a room's variable schema.

Only the fields the schema needs are modelled; everything else in the document
is ignored so maps exported by any Tiled version validate.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TiledProperty(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str | None = None
    # Tiled emits strings, booleans, numbers and (for class properties) objects.
    value: Any = None


class TiledObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    name: str = ""
    type: str = ""
    template: str | None = None
    properties: list[TiledProperty] = Field(default_factory=list)


class TiledLayer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    type: str
    objects: list[TiledObject] = Field(default_factory=list)


class TiledMap(BaseModel):
    model_config = ConfigDict(extra="ignore")

    layers: list[TiledLayer] = Field(default_factory=list)

    def object_layers(self) -> list[TiledLayer]:
        return [layer for layer in self.layers if layer.type == "objectgroup"]
