from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass

from fastapi import WebSocket

from roomvars.variables.policy import tag_allows

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class Subscriber:
    websocket: WebSocket
    tags: frozenset[str]

    def can_read(self, readable_by: str | None) -> bool:
        return tag_allows(readable_by, self.tags)


class RoomWebSocketHub:
    """In-process WebSocket fan-out keyed by room_id.

    Contract:
      - register a connection and its tags via `connect(room_id, websocket, tags)`.
      - push an accepted write with `broadcast_variable(...)`; only subscribers
        holding the variable's `readable_by` tag (if any) receive it.
      - `close_room(room_id)` forgets every subscriber of a closed room, so a
        later room with the same id starts with no listeners.

    The variable store decides *who may read*; this hub only delivers.
    """

    def __init__(self) -> None:
        self._by_room: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def connect(self, room_id: str, websocket: WebSocket, tags: frozenset[str]) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_room[room_id].append(Subscriber(websocket=websocket, tags=tags))

    async def disconnect(self, room_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            subs = self._by_room.get(room_id)
            if not subs:
                return
            subs[:] = [s for s in subs if s.websocket is not websocket]
            if not subs:
                self._by_room.pop(room_id, None)

    def subscriber_count(self, room_id: str) -> int:
        return len(self._by_room.get(room_id, []))

    async def broadcast_variable(self, room_id: str, *, name: str, value: str, readable_by: str | None) -> int:
        async with self._lock:
            targets = [s for s in self._by_room.get(room_id, []) if s.can_read(readable_by)]

        payload = {"type": "variable_updated", "room_id": room_id, "name": name, "value": value}
        dead: list[WebSocket] = []
        sent = 0
        for sub in targets:
            try:
                await sub.websocket.send_json(payload)
                sent += 1
            except Exception:
                dead.append(sub.websocket)

        for ws in dead:
            await self.disconnect(room_id, ws)
        return sent

    async def close_room(self, room_id: str) -> int:
        async with self._lock:
            subs = self._by_room.pop(room_id, [])

        for sub in subs:
            try:
                await sub.websocket.send_json({"type": "room_closed", "room_id": room_id})
            except Exception:
                logger.debug("Subscriber of closed room %s already gone", room_id)
        return len(subs)


hub = RoomWebSocketHub()
