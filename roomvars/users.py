from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class User:
    """The actor behind a read or write: a display name plus capability tags."""

    name: str
    tags: frozenset[str] = frozenset()

    @staticmethod
    def of(name: str, tags: Iterable[str] = ()) -> "User":
        return User(name=name, tags=frozenset(tags))

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags
