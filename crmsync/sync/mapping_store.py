"""Durable local <-> remote id mapping (the sole writer of MappingRecord).

No commit is performed here; callers commit so that a mapping change and
the work that caused it land in the same transaction.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.mapping import MappingRecord

MAPPING_STATUSES = ("synced", "stale", "error")


class MappingStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, local_type: str, local_id: str, remote_type: str) -> MappingRecord | None:
        stmt = select(MappingRecord).where(
            MappingRecord.local_type == local_type,
            MappingRecord.local_id == str(local_id),
            MappingRecord.remote_type == remote_type,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def find(self, local_type: str, local_id: str, remote_type: str) -> str | None:
        record = await self._get(local_type, local_id, remote_type)
        return record.remote_id if record else None

    async def find_by_remote(self, remote_type: str, remote_id: str) -> tuple[str, str] | None:
        stmt = (
            select(MappingRecord)
            .where(
                MappingRecord.remote_type == remote_type,
                MappingRecord.remote_id == remote_id,
            )
            .limit(1)
        )
        record = (await self.db.execute(stmt)).scalars().first()
        if not record:
            return None
        return record.local_type, record.local_id

    async def upsert(self, local_type: str, local_id: str, remote_type: str, remote_id: str) -> MappingRecord:
        """Replace the row for (local_type, local_id, remote_type)."""
        now = utcnow()
        existing = await self._get(local_type, local_id, remote_type)
        if existing:
            existing.remote_id = remote_id
            existing.sync_status = "synced"
            existing.last_sync = now
            await self.db.flush()
            return existing

        record = MappingRecord(
            local_type=local_type,
            local_id=str(local_id),
            remote_type=remote_type,
            remote_id=remote_id,
            sync_status="synced",
            last_sync=now,
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def remove(self, remote_type: str, remote_id: str) -> int:
        """Delete every row pointing at this remote object; returns rows removed."""
        stmt = delete(MappingRecord).where(
            MappingRecord.remote_type == remote_type,
            MappingRecord.remote_id == remote_id,
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def mark(self, local_type: str, local_id: str, remote_type: str, sync_status: str) -> bool:
        """Set sync_status on an existing row; returns False when no row exists."""
        if sync_status not in MAPPING_STATUSES:
            raise ValueError(f"Unknown mapping status: {sync_status}")
        record = await self._get(local_type, local_id, remote_type)
        if not record:
            return False
        record.sync_status = sync_status
        if sync_status == "synced":
            record.last_sync = utcnow()
        return True

    async def list_for_local(self, local_type: str, local_id: str) -> list[MappingRecord]:
        stmt = select(MappingRecord).where(
            MappingRecord.local_type == local_type,
            MappingRecord.local_id == str(local_id),
        )
        return list((await self.db.execute(stmt)).scalars().all())
