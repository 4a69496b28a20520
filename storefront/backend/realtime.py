"""Realtime change feed implemented by polling a table and diffing snapshots."""
import asyncio
import logging
from typing import Any

from .base import Backend, BackendError, ChangeCallback, ChangeEvent, Query, Subscription

logger = logging.getLogger(__name__)


class PollingChangeFeed:
    """
    Emits INSERT/UPDATE/DELETE events for a table.

    The first poll only records a baseline; events are emitted for
    differences found by later polls.
    """

    def __init__(
        self,
        backend: Backend,
        table: str,
        callback: ChangeCallback,
        interval: float = 5.0,
        columns: str = "*",
        key: str = "id",
    ):
        self._backend = backend
        self._table = table
        self._callback = callback
        self._interval = interval
        self._columns = columns
        self._key = key
        self._task: asyncio.Task | None = None
        self._snapshot: dict[Any, dict[str, Any]] | None = None

    def start(self) -> Subscription:
        """Start polling on the running loop; the returned subscription cancels it."""
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Polling %s for changes every %ss", self._table, self._interval)
        return Subscription(self.stop)

    def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            logger.info("Stopped polling %s", self._table)
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.poll()
            except Exception:
                logger.exception("Change feed poll for %s failed", self._table)
            await asyncio.sleep(self._interval)

    async def poll(self) -> list[ChangeEvent]:
        """Fetch once and dispatch the events found since the previous poll."""
        try:
            rows = await self._backend.select(Query(self._table, self._columns))
        except BackendError as e:
            logger.warning("Change feed poll for %s failed: %s", self._table, e.message)
            return []

        current = {row.get(self._key): row for row in rows}
        previous = self._snapshot
        self._snapshot = current
        if previous is None:
            return []

        events = []
        for key, row in current.items():
            if key not in previous:
                events.append(ChangeEvent(self._table, "INSERT", new=row))
            elif previous[key] != row:
                events.append(ChangeEvent(self._table, "UPDATE", new=row, old=previous[key]))
        for key, row in previous.items():
            if key not in current:
                events.append(ChangeEvent(self._table, "DELETE", old=row))

        for event in events:
            try:
                self._callback(event)
            except Exception:
                logger.exception("Change listener failed for %s %s", self._table, event.event)
        return events
