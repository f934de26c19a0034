from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from roomvars.variables.repository import VariablesRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PendingSave:
    room_id: str
    name: str
    value: str


class PersistenceWorker:
    """Background writer between room stores and the durable backend.

    Contract:
      - `enqueue_save()` never blocks and never raises because of the backend.
      - saves are handed to the repository one at a time, in enqueue order.
      - a failing save is logged and dropped; the in-memory value stays.

    The repository is synchronous (redis-py), so calls run in a worker thread.
    """

    def __init__(self, repository: VariablesRepository) -> None:
        self.repository = repository
        self._queue: asyncio.Queue[PendingSave] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="roomvars-persistence")

    async def load_variables(self, room_id: str) -> dict[str, str]:
        return await asyncio.to_thread(self.repository.load_variables, room_id)

    def enqueue_save(self, room_id: str, name: str, value: str) -> None:
        self._queue.put_nowait(PendingSave(room_id=room_id, name=name, value=value))

    async def join(self) -> None:
        """Wait until every queued save has been attempted."""

        await self._queue.join()

    async def stop(self) -> None:
        if self._task is None:
            return
        if self.running:
            await self.join()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                await asyncio.to_thread(self.repository.save_variable, item.room_id, item.name, item.value)
            except Exception:
                logger.exception(
                    "Error while saving variable %r of room %r; keeping the in-memory value only.",
                    item.name,
                    item.room_id,
                )
            finally:
                self._queue.task_done()
