from __future__ import annotations

from pydantic import BaseModel, Field

from roomvars.tiled import TiledMap
from roomvars.users import User


class UserPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    tags: list[str] = Field(default_factory=list)

    def to_user(self) -> User:
        return User.of(self.name, self.tags)


class RoomCreateRequest(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=512)
    # Absent for rooms whose map the server cannot see: no schema, no restrictions.
    map: TiledMap | None = None


class RoomResponse(BaseModel):
    room_id: str
    schema_bound: bool
    persisting: bool
    state: str
    # Values readable without any tag.
    variables: dict[str, str] = Field(default_factory=dict)


class RoomListResponse(BaseModel):
    room_ids: list[str]


class SetVariableRequest(BaseModel):
    # Opaque to the server; clients usually send JSON text.
    value: str
    user: UserPayload


class SetVariableResponse(BaseModel):
    name: str
    value: str
    readable_by: str | None = None


class VariablesResponse(BaseModel):
    room_id: str
    variables: dict[str, str]
