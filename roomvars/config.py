from __future__ import annotations

import os
from dataclasses import dataclass

DEVELOPMENT = "development"


@dataclass(frozen=True, slots=True)
class Settings:
    # None => no durable backend; rooms keep their variables in memory only.
    redis_url: str | None
    environment: str
    log_level: str

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT


def settings_from_env() -> Settings:
    return Settings(
        redis_url=os.environ.get("REDIS_URL") or None,
        environment=os.environ.get("ROOMVARS_ENV", "production").strip().casefold(),
        log_level=os.environ.get("ROOMVARS_LOG_LEVEL", "INFO").upper(),
    )
