"""Simulated sync runs - status transitions driven by timers."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from app.models.entities import utcnow
from app.models.sync_operation import SyncOperation
from app.services.store import SyncStore

logger = logging.getLogger(__name__)

FAILED_MESSAGE = "Sync operation failed"
TIMED_OUT_MESSAGE = "Sync operation timed out"


@dataclass
class _OperationTimers:
    """Outstanding timers for one running operation."""
    completion: asyncio.Task
    timeout: asyncio.Task
    cleanup: Optional[asyncio.TimerHandle] = None


class SyncSimulator:
    """
    Runs sync operations without contacting the content API.

    A triggered operation starts as "running". After `completion_delay` it is
    moved to "completed" (or "failed" if the store errors). A second timer
    fails it after `timeout` if it is still running, and is disarmed
    `cleanup_delay` after a completion lands. Both paths go through
    `SyncStore.transition_operation`, so only the first one to fire wins.
    """

    def __init__(
        self,
        store: SyncStore,
        completion_delay: float = 2.0,
        timeout: float = 30.0,
        cleanup_delay: float = 0.5,
        total_records: int = 100,
    ):
        self.store = store
        self.completion_delay = completion_delay
        self.timeout = timeout
        self.cleanup_delay = cleanup_delay
        self.total_records = total_records
        self._timers: dict[str, _OperationTimers] = {}

    @property
    def in_flight(self) -> int:
        """Number of operations with a completion or timeout task outstanding."""
        return len(self._timers)

    async def trigger(self, database_id: str | None = None, operation: str = "sync") -> SyncOperation:
        """Create a running operation and arm its timers. Does not wait for completion."""
        sync_op = await self.store.create_operation({
            "database_id": database_id,
            "operation": operation,
            "status": "running",
            "records_processed": 0,
            "total_records": self.total_records,
            "error_message": None,
        })
        logger.info(f"Started {operation} operation {sync_op.id} (database={database_id})")

        if database_id:
            await self._mark_database(database_id, {"status": "syncing"})

        timers = _OperationTimers(
            completion=asyncio.create_task(self._complete(sync_op.id)),
            timeout=asyncio.create_task(self._enforce_timeout(sync_op.id)),
        )
        self._timers[sync_op.id] = timers
        for task in (timers.completion, timers.timeout):
            task.add_done_callback(lambda _, op_id=sync_op.id: self._release(op_id))
        return sync_op

    async def _complete(self, operation_id: str) -> None:
        await asyncio.sleep(self.completion_delay)

        try:
            sync_op = await self.store.transition_operation(operation_id, {
                "status": "completed",
                "records_processed": SyncOperation.total_records,
                "end_time": utcnow(),
            })
        except Exception as e:
            logger.error(f"Failed to update sync operation {operation_id}: {e}")
            try:
                sync_op = await self.store.transition_operation(operation_id, {
                    "status": "failed",
                    "error_message": FAILED_MESSAGE,
                    "end_time": utcnow(),
                })
            except Exception as e:
                # Left running; the timeout timer is still armed
                logger.error(f"Failed to mark sync operation {operation_id} as failed: {e}")
                return

        if sync_op is None:
            logger.info(f"Sync operation {operation_id} already finished, completion skipped")
            return

        logger.info(f"Sync operation {operation_id} {sync_op.status}")
        await self._record_outcome(sync_op)

        timers = self._timers.get(operation_id)
        if timers is not None:
            timers.cleanup = asyncio.get_running_loop().call_later(
                self.cleanup_delay, timers.timeout.cancel
            )

    async def _enforce_timeout(self, operation_id: str) -> None:
        await asyncio.sleep(self.timeout)

        try:
            sync_op = await self.store.transition_operation(operation_id, {
                "status": "failed",
                "error_message": TIMED_OUT_MESSAGE,
                "end_time": utcnow(),
            })
        except Exception as e:
            logger.error(f"Failed to handle sync timeout for {operation_id}: {e}")
            return

        if sync_op is not None:
            logger.warning(f"Sync operation {operation_id} timed out after {self.timeout}s")
            await self._record_outcome(sync_op)

    def _release(self, operation_id: str) -> None:
        """Drop an operation's timers once neither task is outstanding."""
        timers = self._timers.get(operation_id)
        if timers is not None and timers.completion.done() and timers.timeout.done():
            del self._timers[operation_id]

    async def _record_outcome(self, sync_op: SyncOperation) -> None:
        """Reflect a terminal operation on its database, if it has one."""
        if not sync_op.database_id:
            return
        if sync_op.status == "completed":
            await self._mark_database(sync_op.database_id, {
                "status": "connected",
                "last_sync": sync_op.end_time,
            })
        else:
            await self._mark_database(sync_op.database_id, {"status": "error"})

    async def _mark_database(self, database_id: str, fields: dict) -> None:
        try:
            database = await self.store.update_database(database_id, fields)
        except Exception as e:
            logger.error(f"Failed to update database {database_id}: {e}")
            return
        if database is None:
            logger.debug(f"Sync references unknown database {database_id}")

    async def shutdown(self) -> None:
        """Cancel every outstanding timer."""
        tasks = []
        for timers in list(self._timers.values()):
            if timers.cleanup is not None:
                timers.cleanup.cancel()
            for task in (timers.completion, timers.timeout):
                task.cancel()
                tasks.append(task)
        self._timers.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
