from __future__ import annotations

import redis


def create_redis(url: str | None) -> redis.Redis | None:
    if not url:
        return None
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(url, decode_responses=True)
