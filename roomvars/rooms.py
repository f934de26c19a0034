from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Collection

from roomvars.errors import RoomNotReadyError
from roomvars.lifecycle import RoomLifecycle
from roomvars.tiled import TiledMap
from roomvars.users import User
from roomvars.variables.manager import VariablesManager
from roomvars.variables.persistence import PersistenceWorker

logger = logging.getLogger(__name__)


class Room:
    """One live room: its variable store plus its lifecycle."""

    def __init__(self, room_id: str, variables: VariablesManager) -> None:
        self.room_id = room_id
        self.variables = variables
        self.lifecycle = RoomLifecycle()

    @property
    def is_ready(self) -> bool:
        return self.lifecycle.ready.is_active

    @property
    def schema_bound(self) -> bool:
        return self.variables.schema is not None

    async def start(self) -> None:
        self.lifecycle.start_loading()
        try:
            await self.variables.init()
        except Exception:
            self.lifecycle.load_failed()
            raise
        self.lifecycle.loaded()

    def close(self) -> None:
        if not self.lifecycle.closed.is_active:
            self.lifecycle.close()

    def set_variable(self, name: str, value: str, user: User) -> str | None:
        if not self.is_ready:
            raise RoomNotReadyError(f"Room {self.room_id} is {self.lifecycle.state_id}; writes are not accepted")
        readable_by = self.variables.set_variable(name, value, user)
        logger.debug('Room %s: "%s" set by %s', self.room_id, name, user.name)
        return readable_by

    def get_variables_for_tags(self, tags: Collection[str]) -> dict[str, str]:
        return self.variables.get_variables_for_tags(tags)


class RoomRegistry:
    """Rooms of this process, keyed by room id.

    A room is only handed out once its saved variables are loaded. Creation is
    serialized per room id; loading one room never holds up another.
    """

    def __init__(self, *, persistence: PersistenceWorker | None = None, development: bool = False) -> None:
        self.persistence = persistence
        self.development = development
        self._rooms: dict[str, Room] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def room_ids(self) -> list[str]:
        return sorted(self._rooms)

    async def get_or_create(self, room_id: str, tiled_map: TiledMap | None) -> Room:
        async with self._locks[room_id]:
            room = self._rooms.get(room_id)
            if room is not None:
                return room

            manager = VariablesManager(
                room_id,
                tiled_map,
                persistence=self.persistence,
                development=self.development,
            )
            room = Room(room_id, manager)
            await room.start()
            self._rooms[room_id] = room
            logger.info(
                "Room %s ready (schema: %s, persisting: %s)",
                room_id,
                "yes" if room.schema_bound else "none",
                manager.should_persist(),
            )
            return room

    async def close(self, room_id: str) -> bool:
        async with self._locks[room_id]:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        room.close()
        return True
