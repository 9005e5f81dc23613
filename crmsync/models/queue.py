"""Durable queue of pending outbound sync operations."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin, utcnow

QUEUE_OPERATIONS: tuple[str, ...] = ("create", "update", "update_status", "delete")


class SyncQueueItem(UUIDMixin, TimestampMixin, Base):
    """Queue item referencing a local entity to push to the remote CRM."""

    __tablename__ = "crm_sync_queue"
    __table_args__ = (
        Index("ix_crm_sync_queue_due", "status", "priority", "scheduled_at"),
    )

    operation: Mapped[str] = mapped_column(String(20))  # create/update/update_status/delete
    local_type: Mapped[str] = mapped_column(String(50))
    local_id: Mapped[str] = mapped_column(String(255))
    priority: Mapped[int] = mapped_column(Integer, default=10)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", index=True
    )  # pending/processing/completed/failed
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    claim_token: Mapped[str | None] = mapped_column(String(64), default=None, index=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<SyncQueueItem {self.operation} {self.local_type}:{self.local_id} {self.status} attempts={self.attempts}>"
