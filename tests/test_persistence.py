from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio

from roomvars.errors import PersistenceError
from roomvars.tiled import TiledMap
from roomvars.users import User
from roomvars.variables.manager import VariablesManager
from roomvars.variables.persistence import PersistenceWorker
from roomvars.variables.repository import RedisVariablesRepository, room_variables_key

PLAYER = User.of("Pat", ["player"])
ADMIN = User.of("Ada", ["admin"])


class _FlakyRepository:
    """Fails on configured names, records everything else."""

    def __init__(self, failing: set[str]) -> None:
        self.failing = failing
        self.saved: list[tuple[str, str, str]] = []

    def load_variables(self, room_id: str) -> dict[str, str]:
        return {}

    def save_variable(self, room_id: str, name: str, value: str) -> None:
        if name in self.failing:
            raise PersistenceError(f"backend down while saving {name}")
        self.saved.append((room_id, name, value))


@pytest_asyncio.fixture()
async def worker(fake_redis: fakeredis.FakeRedis) -> AsyncGenerator[PersistenceWorker, None]:
    w = PersistenceWorker(RedisVariablesRepository(fake_redis))
    w.start()
    yield w
    await w.stop()


@pytest.mark.asyncio
async def test_round_trip_through_new_room_instance(
    variables_map: TiledMap, worker: PersistenceWorker
) -> None:
    first = VariablesManager("room-1", variables_map, persistence=worker, development=False)
    await first.init()
    assert first.should_persist()

    first.set_variable("score", "42", PLAYER)
    first.set_variable("secret", '"s3cr3t"', ADMIN)
    await worker.join()

    second = VariablesManager("room-1", variables_map, persistence=worker, development=False)
    assert second.get_variables_for_tags([])["score"] == "0"
    await second.init()

    assert second.get_variables_for_tags([])["score"] == "42"
    assert second.get_variables_for_tags(["admin"])["secret"] == '"s3cr3t"'


@pytest.mark.asyncio
async def test_only_persist_flagged_variables_are_saved(
    variables_map: TiledMap, worker: PersistenceWorker, fake_redis: fakeredis.FakeRedis
) -> None:
    vm = VariablesManager("room-1", variables_map, persistence=worker, development=False)
    await vm.init()

    vm.set_variable("score", "1", PLAYER)
    vm.set_variable("doorOpen", "true", PLAYER)
    vm.set_variable("message", '"hello"', PLAYER)
    await worker.join()

    assert fake_redis.hgetall(room_variables_key("room-1")) == {"score": "1"}


@pytest.mark.asyncio
async def test_rooms_are_partitioned_by_id(variables_map: TiledMap, worker: PersistenceWorker) -> None:
    a = VariablesManager("room-a", variables_map, persistence=worker, development=False)
    a.set_variable("score", "10", PLAYER)
    await worker.join()

    b = VariablesManager("room-b", variables_map, persistence=worker, development=False)
    await b.init()
    assert b.get_variables_for_tags([])["score"] == "0"


@pytest.mark.asyncio
async def test_schema_less_room_persists_only_in_development(
    worker: PersistenceWorker, fake_redis: fakeredis.FakeRedis
) -> None:
    prod = VariablesManager("scratch-prod", None, persistence=worker, development=False)
    await prod.init()
    prod.set_variable("anything", "1", PLAYER)

    dev = VariablesManager("scratch-dev", None, persistence=worker, development=True)
    await dev.init()
    dev.set_variable("anything", "2", PLAYER)
    await worker.join()

    assert fake_redis.hgetall(room_variables_key("scratch-prod")) == {}
    assert fake_redis.hgetall(room_variables_key("scratch-dev")) == {"anything": "2"}

    reloaded = VariablesManager("scratch-dev", None, persistence=worker, development=True)
    await reloaded.init()
    assert reloaded.get_variables_for_tags([]) == {"anything": "2"}


@pytest.mark.asyncio
async def test_init_overrides_defaults_and_drops_undeclared_names(
    variables_map: TiledMap,
    worker: PersistenceWorker,
    fake_redis: fakeredis.FakeRedis,
    caplog: pytest.LogCaptureFixture,
) -> None:
    fake_redis.hset(room_variables_key("room-1"), mapping={"score": "99", "removedFromMap": "1"})

    vm = VariablesManager("room-1", variables_map, persistence=worker, development=False)
    with caplog.at_level(logging.WARNING, logger="roomvars.variables.manager"):
        await vm.init()

    assert vm.get_variables_for_tags(["admin"])["score"] == "99"
    assert "removedFromMap" not in vm.get_variables_for_tags(["admin"])
    assert any("removedFromMap" in rec.getMessage() for rec in caplog.records)


@pytest.mark.asyncio
async def test_failed_save_is_logged_and_never_reverts(
    variables_map: TiledMap, caplog: pytest.LogCaptureFixture
) -> None:
    repo = _FlakyRepository(failing={"score"})
    w = PersistenceWorker(repo)
    w.start()
    try:
        vm = VariablesManager("room-1", variables_map, persistence=w, development=False)
        with caplog.at_level(logging.ERROR, logger="roomvars.variables.persistence"):
            assert vm.set_variable("score", "42", PLAYER) is None
            vm.set_variable("secret", '"ok"', ADMIN)
            await w.join()
    finally:
        await w.stop()

    assert vm.get_variables_for_tags([])["score"] == "42"
    # The worker keeps going after a failure.
    assert repo.saved == [("room-1", "secret", '"ok"')]
    assert any("score" in rec.getMessage() for rec in caplog.records)


@pytest.mark.asyncio
async def test_saves_are_applied_in_enqueue_order() -> None:
    repo = _FlakyRepository(failing=set())
    w = PersistenceWorker(repo)
    w.start()
    for i in range(5):
        w.enqueue_save("room-1", "counter", str(i))
    await w.stop()

    assert [value for _, _, value in repo.saved] == ["0", "1", "2", "3", "4"]
    assert not w.running


@pytest.mark.asyncio
async def test_set_variable_does_not_wait_for_the_backend(variables_map: TiledMap) -> None:
    repo = _FlakyRepository(failing=set())
    # Never started: saves stay queued, writes still succeed immediately.
    w = PersistenceWorker(repo)

    vm = VariablesManager("room-1", variables_map, persistence=w, development=False)
    vm.set_variable("score", "3", PLAYER)

    assert vm.get_variables_for_tags([])["score"] == "3"
    assert repo.saved == []


def test_redis_errors_become_persistence_errors() -> None:
    server = fakeredis.FakeServer()
    server.connected = False
    repo = RedisVariablesRepository(fakeredis.FakeRedis(server=server, decode_responses=True))

    with pytest.raises(PersistenceError):
        repo.load_variables("room-1")
    with pytest.raises(PersistenceError):
        repo.save_variable("room-1", "score", "1")


@pytest.mark.asyncio
async def test_init_propagates_load_failure(variables_map: TiledMap) -> None:
    server = fakeredis.FakeServer()
    server.connected = False
    w = PersistenceWorker(RedisVariablesRepository(fakeredis.FakeRedis(server=server, decode_responses=True)))

    vm = VariablesManager("room-1", variables_map, persistence=w, development=False)
    with pytest.raises(PersistenceError):
        await vm.init()
