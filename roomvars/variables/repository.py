from __future__ import annotations

from typing import Protocol

import redis

from roomvars.errors import PersistenceError

ROOM_VARIABLES_KEY_PREFIX = "roomvars:room:"  # + {room_id}:variables


def room_variables_key(room_id: str) -> str:
    return f"{ROOM_VARIABLES_KEY_PREFIX}{room_id}:variables"


class VariablesRepository(Protocol):
    def load_variables(self, room_id: str) -> dict[str, str]:  # pragma: no cover
        ...

    def save_variable(self, room_id: str, name: str, value: str) -> None:  # pragma: no cover
        ...


class RedisVariablesRepository:
    """Stores each room's variables in one Redis hash (field = variable name)."""

    def __init__(self, r: redis.Redis) -> None:
        self._r = r

    def load_variables(self, room_id: str) -> dict[str, str]:
        try:
            raw = self._r.hgetall(room_variables_key(room_id))
        except redis.RedisError as e:
            raise PersistenceError(f"Could not load variables of room {room_id!r}") from e
        # decode_responses=True => already str, but be lenient with raw clients.
        return {_as_str(k): _as_str(v) for k, v in dict(raw).items()}  # type: ignore[arg-type]

    def save_variable(self, room_id: str, name: str, value: str) -> None:
        try:
            self._r.hset(room_variables_key(room_id), name, value)
        except redis.RedisError as e:
            raise PersistenceError(f"Could not save variable {name!r} of room {room_id!r}") from e


def _as_str(v: str | bytes) -> str:
    return v.decode("utf-8") if isinstance(v, bytes) else v
