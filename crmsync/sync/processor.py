"""Drain the sync queue: claim due items, dispatch, apply the retry policy."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update

from ..models.base import utcnow
from ..models.booking import Booking
from ..models.queue import SyncQueueItem
from ..remote.result import ErrorKind, SyncError
from .engine import SyncEngine
from .queue_svc import backoff_minutes, claim_due, purge_finished, release_stale_claims

logger = logging.getLogger(__name__)

ERROR_MESSAGE_LIMIT = 2000


@dataclass(frozen=True)
class ProcessStats:
    claimed: int
    completed: int
    retried: int
    failed: int
    released: int = 0
    purged: int = 0
    lost: int = 0


class QueueProcessor:
    """Processes one batch of queue items against the enabled translators."""

    def __init__(self, engine: SyncEngine):
        self.engine = engine
        self.db = engine.db
        self.settings = engine.settings

    async def process(self, limit: int | None = None) -> ProcessStats:
        batch = limit if limit is not None else self.settings.queue_batch_size
        released = await release_stale_claims(self.db, self.settings.claim_timeout_minutes)
        if released:
            logger.warning("Released %d stale queue claim(s)", released)

        items = await claim_due(self.db, batch, worker_token=uuid.uuid4().hex)
        completed = retried = failed = lost = 0
        for item in items:
            outcome = await self.process_item(item)
            if outcome == "completed":
                completed += 1
            elif outcome == "pending":
                retried += 1
            elif outcome == "lost":
                lost += 1
            else:
                failed += 1

        purged = await purge_finished(self.db, self.settings.queue_retention_days)
        stats = ProcessStats(
            claimed=len(items), completed=completed, retried=retried, failed=failed,
            released=released, purged=purged, lost=lost,
        )
        if items:
            logger.info(
                "Sync queue batch: %d claimed, %d completed, %d retrying, %d failed",
                stats.claimed, stats.completed, stats.retried, stats.failed,
            )
        return stats

    async def process_item(self, item: SyncQueueItem) -> str:
        """Dispatch one claimed item and persist its new state; returns that state.

        Returns ``"lost"`` when the claim expired and another run took the item
        over while it was being processed; the outcome is then discarded.
        """
        token = item.claim_token
        try:
            errors = await self._dispatch(item)
        except Exception as exc:
            logger.exception("Sync queue item %s crashed", item.id)
            await self.db.rollback()
            await self.db.refresh(item)
            errors = [SyncError(ErrorKind.TRANSIENT_NETWORK, f"Unexpected error: {exc}")]
        return await self._finish(item, token, errors)

    async def _dispatch(self, item: SyncQueueItem) -> list[SyncError]:
        if item.local_type != "booking":
            return [SyncError(ErrorKind.VALIDATION, f"Unsupported local type: {item.local_type}")]
        if item.operation in ("create", "update"):
            return await self._sync(item.local_id)
        if item.operation == "update_status":
            return await self._sync_status(item.local_id)
        if item.operation == "delete":
            return await self._unlink(item.local_id)
        return [SyncError(ErrorKind.VALIDATION, f"Unknown operation: {item.operation}")]

    async def _sync(self, local_id: str) -> list[SyncError]:
        errors = []
        for translator in self.engine.enabled_translators():
            result = await translator.sync_from_local(local_id)
            if not result.ok:
                errors.append(result.error)
        return errors

    async def _sync_status(self, local_id: str) -> list[SyncError]:
        booking_id = _as_int(local_id)
        booking = await self.db.get(Booking, booking_id) if booking_id is not None else None
        if booking is None:
            return [SyncError(ErrorKind.VALIDATION, f"Booking {local_id} not found")]
        errors = []
        for translator in self.engine.enabled_translators():
            result = await translator.update_status_from_local(local_id, booking.status)
            if not result.ok:
                errors.append(result.error)
        return errors

    async def _unlink(self, local_id: str) -> list[SyncError]:
        """Drop per-booking mappings; remote objects are left in place."""
        records = await self.engine.mappings.list_for_local("booking", local_id)
        for record in records:
            await self.engine.mappings.remove(record.remote_type, record.remote_id)
            self.engine.sync_log.record(
                "outbound", "unlink", status="success",
                message=f"Mapping to {record.remote_type} removed after booking deletion",
                local_type="booking", local_id=local_id,
                remote_type=record.remote_type, remote_id=record.remote_id,
            )
        await self.db.commit()
        return []

    async def _finish(self, item: SyncQueueItem, token: str | None, errors: list[SyncError]) -> str:
        now = utcnow()
        values: dict = {"claim_token": None}
        if not errors:
            values.update(status="completed", processed_at=now, error_message=None)
        else:
            message = "; ".join(str(e) for e in errors)[:ERROR_MESSAGE_LIMIT]
            values["error_message"] = message
            permanent = any(not e.retryable for e in errors)
            if permanent or item.attempts >= item.max_attempts:
                values.update(status="failed", processed_at=now)
            else:
                delay = backoff_minutes(item.attempts, self.settings.queue_backoff_max_minutes)
                values.update(status="pending", scheduled_at=now + timedelta(minutes=delay))

        # Only the run holding the claim may record the outcome.
        result = await self.db.execute(
            update(SyncQueueItem)
            .where(
                SyncQueueItem.id == item.id,
                SyncQueueItem.claim_token == token,
                SyncQueueItem.status == "processing",
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            await self.db.rollback()
            await self.db.refresh(item)
            logger.warning(
                "Sync queue item %s was reclaimed while processing; dropping %s outcome",
                item.id, values["status"],
            )
            return "lost"
        await self.db.commit()
        await self.db.refresh(item)

        if item.status == "failed":
            logger.warning("Sync queue item %s failed: %s", item.id, item.error_message)
        elif item.status == "pending":
            logger.info(
                "Sync queue item %s retrying in %d min: %s",
                item.id, backoff_minutes(item.attempts, self.settings.queue_backoff_max_minutes),
                item.error_message,
            )
        return item.status


def _as_int(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
