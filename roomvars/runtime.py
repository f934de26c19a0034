from __future__ import annotations

import logging

from roomvars.config import Settings
from roomvars.infra.redis_client import create_redis
from roomvars.rooms import RoomRegistry
from roomvars.variables.persistence import PersistenceWorker
from roomvars.variables.repository import RedisVariablesRepository

logger = logging.getLogger(__name__)

_REGISTRY: RoomRegistry | None = None


def init_registry(*, settings: Settings) -> RoomRegistry:
    """Create the process-wide room registry and start its persistence worker.

    Must run inside the event loop (app startup). Safe to call multiple times;
    subsequent calls return the already created instance.
    """

    global _REGISTRY
    if _REGISTRY is None:
        persistence: PersistenceWorker | None = None
        r = create_redis(settings.redis_url)
        if r is not None:
            persistence = PersistenceWorker(RedisVariablesRepository(r))
            persistence.start()
        else:
            logger.info("REDIS_URL is not set; room variables will not be persisted.")
        _REGISTRY = RoomRegistry(persistence=persistence, development=settings.is_development)
    return _REGISTRY


async def shutdown_registry() -> None:
    global _REGISTRY
    if _REGISTRY is None:
        return
    if _REGISTRY.persistence is not None:
        await _REGISTRY.persistence.stop()
    _REGISTRY = None


def reset_registry_for_tests() -> None:
    global _REGISTRY
    _REGISTRY = None


def get_registry() -> RoomRegistry:
    if _REGISTRY is None:
        raise RuntimeError("Room registry not initialized. Call init_registry() at startup.")
    return _REGISTRY
