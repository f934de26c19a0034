from __future__ import annotations

from statemachine import State, StateMachine


class RoomLifecycle(StateMachine):
    """created -> loading -> ready -> closed.

    A failed load drops back to `created` so the room can be started again.
    Values may be read in any state; writes are only accepted while `ready`.
    """

    created = State("created", initial=True)
    loading = State("loading")
    ready = State("ready")
    closed = State("closed", final=True)

    start_loading = created.to(loading)
    loaded = loading.to(ready)
    load_failed = loading.to(created)
    close = created.to(closed) | loading.to(closed) | ready.to(closed)

    @property
    def state_id(self) -> str:
        return str(self.current_state.id)
