"""Writer for the operator-facing sync audit log."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.sync_log import SyncLog


class SyncLogger:
    """Appends SyncLog rows; rows are committed with the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def record(
        self,
        direction: str,
        action: str,
        *,
        status: str,
        message: str | None = None,
        local_type: str | None = None,
        local_id: str | int | None = None,
        remote_type: str | None = None,
        remote_id: str | None = None,
        request_data: dict | None = None,
    ) -> SyncLog:
        entry = SyncLog(
            direction=direction,
            action=action,
            local_type=local_type,
            local_id=str(local_id) if local_id is not None else None,
            remote_type=remote_type,
            remote_id=remote_id,
            status=status,
            message=message,
            request_data=request_data,
        )
        self.db.add(entry)
        return entry


async def list_logs(db: AsyncSession, page: int = 1, per_page: int = 20) -> tuple[list[SyncLog], int]:
    """Newest-first page of log entries plus the total count."""
    page = max(1, page)
    per_page = max(1, min(per_page, 200))
    total = (await db.execute(select(func.count()).select_from(SyncLog))).scalar_one()
    stmt = (
        select(SyncLog)
        .order_by(SyncLog.created_at.desc(), SyncLog.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    rows = list((await db.execute(stmt)).scalars().all())
    return rows, total
