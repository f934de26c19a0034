from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import fakeredis
import pytest
from fastapi.testclient import TestClient

from roomvars.tiled import TiledMap

MAPS_DIR = Path(__file__).resolve().parent / "assets" / "maps"


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs (PyCharm/CLI).

    In CI, we *don't* auto-load `.env` by default so a developer's REDIS_URL or
    ROOMVARS_ENV never leaks into the test run.
    Opt-in with: ROOMVARS_LOAD_DOTENV_FOR_TESTS=1
    """

    if os.environ.get("CI") and os.environ.get("ROOMVARS_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def load_map() -> Callable[[str], TiledMap]:
    def _load(name: str) -> TiledMap:
        return TiledMap.model_validate_json((MAPS_DIR / name).read_text(encoding="utf-8"))

    return _load


@pytest.fixture()
def variables_map(load_map: Callable[[str], TiledMap]) -> TiledMap:
    return load_map("variables.json")


@pytest.fixture()
def fake_redis() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_redis(
    monkeypatch: pytest.MonkeyPatch, fake_redis: fakeredis.FakeRedis
) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient whose room registry persists into fakeredis.

    The registry (and its persistence worker) is created by the app's startup
    hook inside the TestClient's event loop, and flushed on shutdown.
    """

    from roomvars.main import app
    from roomvars.runtime import reset_registry_for_tests

    monkeypatch.setattr("roomvars.runtime.create_redis", lambda url: fake_redis)
    monkeypatch.delenv("ROOMVARS_ENV", raising=False)
    reset_registry_for_tests()

    with TestClient(app) as c:
        yield c, fake_redis
    reset_registry_for_tests()
