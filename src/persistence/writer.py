"""Best-effort ordered writer between the orchestrator and a persistence backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.models.session import LogEntry, Scenario, Session
from .backend import PersistenceBackend

logger = logging.getLogger(__name__)

_STOP = object()


class PersistenceWriter:
    """Queues persistence operations and applies them in order on a background task.

    Callers never wait on storage and never see its errors: a failing write is
    logged and counted, and the queue moves on. Payloads are snapshotted when
    queued, so later mutations of the models do not leak into earlier writes.
    """

    def __init__(self, backend: PersistenceBackend | None):
        self.backend = backend
        self.failures = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def create_log(self, entry: LogEntry) -> None:
        self._submit("create_log", entry.session_id, entry.model_dump(mode="json"))

    def update_scenario(self, session_id: str, scenario: Scenario) -> None:
        data = scenario.model_dump(mode="json")
        data["duration_ms"] = scenario.duration_ms
        self._submit("update_scenario", session_id, scenario.id, data)

    def update_session(self, session: Session) -> None:
        data = session.model_dump(mode="json")
        data["duration_ms"] = session.duration_ms
        self._submit("update_session", session.id, data)

    def create_scenario_report(self, session_id: str, scenario_id: str, report: dict[str, Any]) -> None:
        self._submit("create_scenario_report", session_id, scenario_id, report)

    def create_session_report(self, session_id: str, report: dict[str, Any]) -> None:
        self._submit("create_session_report", session_id, report)

    async def drain(self) -> None:
        """Wait until every queued operation has been attempted."""
        if self._task is not None:
            await self._queue.join()

    async def close(self) -> None:
        """Drain the queue and stop the background task."""
        if self._task is None:
            return
        self._queue.put_nowait(_STOP)
        await self._task
        self._task = None

    def _submit(self, operation: str, *args: Any) -> None:
        if self.backend is None:
            return
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        self._queue.put_nowait((operation, args))

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                operation, args = item
                await getattr(self.backend, operation)(*args)
            except Exception as e:
                self.failures += 1
                logger.warning("Persistence %s failed: %s", item[0], e)
            finally:
                self._queue.task_done()
