from __future__ import annotations

from collections.abc import Iterable


class VariableError(ValueError):
    """Base class for errors the caller of the variable store is expected to handle."""


class SchemaViolationError(VariableError):
    pass


class UnknownVariableError(VariableError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Trying to set a variable "{name}" that is not defined as an object in the map.')
        self.name = name


class AuthorizationDeniedError(VariableError):
    def __init__(self, *, variable: str, user_name: str, required_tag: str, user_tags: Iterable[str]) -> None:
        tags = tuple(sorted(user_tags))
        super().__init__(
            f'Trying to set a variable "{variable}". User "{user_name}" does not have sufficient permission. '
            f'Required tag: "{required_tag}". User tags: {", ".join(tags)}.'
        )
        self.variable = variable
        self.user_name = user_name
        self.required_tag = required_tag
        self.user_tags = tags


class RoomNotReadyError(VariableError):
    pass


class PersistenceError(RuntimeError):
    """The durable backend failed to load or save variables."""


class InternalConsistencyError(RuntimeError):
    pass
