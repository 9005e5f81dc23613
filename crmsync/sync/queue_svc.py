"""Sync queue persistence: enqueue, claim, retry policy, retention."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.queue import QUEUE_OPERATIONS, SyncQueueItem

PRIORITY_DEFAULT = 10
PRIORITY_STATUS = 5


def backoff_minutes(attempts: int, cap_minutes: int) -> int:
    """2^attempts minutes, capped."""
    return min(2 ** max(0, attempts), max(1, cap_minutes))


async def enqueue(
    db: AsyncSession,
    operation: str,
    local_type: str,
    local_id: str | int,
    *,
    priority: int = PRIORITY_DEFAULT,
    max_attempts: int = 3,
    scheduled_at: datetime | None = None,
) -> SyncQueueItem:
    """Add a pending item. Commit is left to the caller."""
    if operation not in QUEUE_OPERATIONS:
        raise ValueError(f"Unknown sync operation: {operation}")
    item = SyncQueueItem(
        operation=operation,
        local_type=local_type,
        local_id=str(local_id),
        priority=priority,
        status="pending",
        attempts=0,
        max_attempts=max(1, max_attempts),
        scheduled_at=scheduled_at or utcnow(),
    )
    db.add(item)
    return item


async def get_item(db: AsyncSession, item_id: uuid.UUID) -> SyncQueueItem | None:
    return await db.get(SyncQueueItem, item_id)


async def list_items(db: AsyncSession, status: str | None = None, limit: int = 100) -> list[SyncQueueItem]:
    stmt = select(SyncQueueItem).order_by(SyncQueueItem.priority.asc(), SyncQueueItem.scheduled_at.asc())
    if status:
        stmt = stmt.where(SyncQueueItem.status == status)
    return list((await db.execute(stmt.limit(limit))).scalars().all())


async def status_counts(db: AsyncSession) -> dict[str, int]:
    stmt = select(SyncQueueItem.status, func.count()).group_by(SyncQueueItem.status)
    return {status: count for status, count in (await db.execute(stmt)).all()}


async def claim_due(db: AsyncSession, limit: int, worker_token: str | None = None) -> list[SyncQueueItem]:
    """Atomically claim up to ``limit`` due items for this worker.

    Claimed items move to ``processing`` with ``attempts`` incremented and are
    returned in (priority, scheduled_at) order.
    """
    token = worker_token or uuid.uuid4().hex
    now = utcnow()
    due = (
        select(SyncQueueItem.id)
        .where(
            SyncQueueItem.status == "pending",
            SyncQueueItem.scheduled_at <= now,
            SyncQueueItem.attempts < SyncQueueItem.max_attempts,
        )
        .order_by(SyncQueueItem.priority.asc(), SyncQueueItem.scheduled_at.asc())
        .limit(max(0, limit))
    )
    stmt = (
        update(SyncQueueItem)
        .where(SyncQueueItem.id.in_(due), SyncQueueItem.status == "pending")
        .values(
            status="processing",
            attempts=SyncQueueItem.attempts + 1,
            claim_token=token,
            claimed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
    await db.commit()

    claimed = (
        select(SyncQueueItem)
        .where(SyncQueueItem.claim_token == token, SyncQueueItem.status == "processing")
        .order_by(SyncQueueItem.priority.asc(), SyncQueueItem.scheduled_at.asc())
        .execution_options(populate_existing=True)
    )
    return list((await db.execute(claimed)).scalars().all())


async def release_stale_claims(db: AsyncSession, timeout_minutes: int) -> int:
    """Return items stuck in ``processing`` past the claim timeout to the queue."""
    now = utcnow()
    cutoff = now - timedelta(minutes=timeout_minutes)
    stale = and_(SyncQueueItem.status == "processing", SyncQueueItem.claimed_at < cutoff)

    exhausted = await db.execute(
        update(SyncQueueItem)
        .where(stale, SyncQueueItem.attempts >= SyncQueueItem.max_attempts)
        .values(status="failed", processed_at=now, claim_token=None,
                error_message="Claim expired after final attempt")
        .execution_options(synchronize_session=False)
    )
    requeued = await db.execute(
        update(SyncQueueItem)
        .where(stale)
        .values(status="pending", scheduled_at=now, claim_token=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return (exhausted.rowcount or 0) + (requeued.rowcount or 0)


async def purge_finished(db: AsyncSession, retention_days: int) -> int:
    """Delete completed/failed items processed before the retention window."""
    cutoff = utcnow() - timedelta(days=retention_days)
    result = await db.execute(
        delete(SyncQueueItem).where(
            SyncQueueItem.status.in_(("completed", "failed")),
            SyncQueueItem.processed_at < cutoff,
        )
    )
    await db.commit()
    return result.rowcount or 0


async def retry_item(db: AsyncSession, item: SyncQueueItem) -> SyncQueueItem:
    """Operator action: re-arm a failed item with a fresh attempt budget."""
    if item.status != "failed":
        raise ValueError("Only failed items can be retried")
    item.status = "pending"
    item.attempts = 0
    item.scheduled_at = utcnow()
    item.processed_at = None
    item.claim_token = None
    await db.commit()
    await db.refresh(item)
    return item
