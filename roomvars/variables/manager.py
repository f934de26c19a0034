from __future__ import annotations

import logging
import threading
from collections.abc import Collection

from roomvars.config import settings_from_env
from roomvars.errors import InternalConsistencyError, UnknownVariableError
from roomvars.tiled import TiledMap
from roomvars.users import User
from roomvars.variables.persistence import PersistenceWorker
from roomvars.variables.policy import can_read, check_write, should_persist
from roomvars.variables.schema import VariableSchema, build_variable_schema

logger = logging.getLogger(__name__)


class VariablesManager:
    """Live variable values of one room.

    `tiled_map` may be None for rooms whose map is not available to the server
    (private network, local tests). Such rooms have no schema: any name can be
    set and every value is readable by everyone.
    """

    def __init__(
        self,
        room_id: str,
        tiled_map: TiledMap | None,
        *,
        persistence: PersistenceWorker | None = None,
        development: bool | None = None,
    ) -> None:
        self.room_id = room_id
        self._persistence = persistence
        self._development = settings_from_env().is_development if development is None else development
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

        # Definitions are fixed for the room's lifetime.
        self._schema: VariableSchema | None = build_variable_schema(tiled_map) if tiled_map is not None else None
        if self._schema is not None:
            self._values.update(self._schema.defaults())

    @property
    def schema(self) -> VariableSchema | None:
        return self._schema

    def should_persist(self) -> bool:
        return should_persist(
            has_backend=self._persistence is not None,
            has_schema=self._schema is not None,
            development=self._development,
        )

    async def init(self) -> None:
        """Overlay the values saved by a previous instance of this room."""

        persistence = self._persistence
        if persistence is None or not self.should_persist():
            return
        saved = await persistence.load_variables(self.room_id)

        with self._lock:
            for name, value in saved.items():
                if self._schema is not None and name not in self._schema:
                    logger.warning(
                        'Ignoring saved variable "%s" of room %s: it is no longer declared in the map.',
                        name,
                        self.room_id,
                    )
                    continue
                self._values[name] = value
        logger.debug("Loaded %d saved variable(s) for room %s", len(saved), self.room_id)

    def set_variable(self, name: str, value: str, user: User) -> str | None:
        """Store `value` and return the tag needed to read it (None = everyone).

        Raises UnknownVariableError / AuthorizationDeniedError; the value is left
        untouched in both cases.
        """

        readable_by: str | None = None
        persist = True
        with self._lock:
            if self._schema is not None:
                definition = self._schema.get(name)
                if definition is None:
                    raise UnknownVariableError(name)
                check_write(definition, user)
                readable_by = definition.readable_by
                persist = definition.persist

            self._values[name] = value

        persistence = self._persistence
        if persist and persistence is not None and self.should_persist():
            persistence.enqueue_save(self.room_id, name, value)
        return readable_by

    def get_variables_for_tags(self, tags: Collection[str]) -> dict[str, str]:
        with self._lock:
            if self._schema is None:
                return dict(self._values)

            readable: dict[str, str] = {}
            for name, value in self._values.items():
                definition = self._schema.get(name)
                if definition is None:
                    raise InternalConsistencyError(f'Unexpected variable "{name}" found has no associated variable object.')
                if can_read(definition, tags):
                    readable[name] = value
            return readable
