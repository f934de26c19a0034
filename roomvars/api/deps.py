from __future__ import annotations

from roomvars.rooms import RoomRegistry
from roomvars.runtime import get_registry


def get_room_registry() -> RoomRegistry:
    return get_registry()
