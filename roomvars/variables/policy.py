from __future__ import annotations

from collections.abc import Collection

from roomvars.errors import AuthorizationDeniedError
from roomvars.users import User
from roomvars.variables.schema import VariableDefinition


def tag_allows(required: str | None, tags: Collection[str]) -> bool:
    """No required tag means everyone; otherwise the tag must be held."""

    return required is None or required in tags


def can_read(definition: VariableDefinition, tags: Collection[str]) -> bool:
    return tag_allows(definition.readable_by, tags)


def can_write(definition: VariableDefinition, tags: Collection[str]) -> bool:
    return tag_allows(definition.writable_by, tags)


def check_write(definition: VariableDefinition, user: User) -> None:
    """Raise AuthorizationDeniedError unless `user` may write `definition`."""

    required = definition.writable_by
    if required is not None and required not in user.tags:
        raise AuthorizationDeniedError(
            variable=definition.name,
            user_name=user.name,
            required_tag=required,
            user_tags=user.tags,
        )


def should_persist(*, has_backend: bool, has_schema: bool, development: bool) -> bool:
    """Saving needs a backend, and either a real map or a development deployment.

    Schema-less rooms are ad-hoc/test rooms; outside development their state is throwaway.
    """

    return has_backend and (has_schema or development)
