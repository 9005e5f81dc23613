"""Local entity <-> remote object id mapping."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin, utcnow


class MappingRecord(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "crm_mapping"
    __table_args__ = (
        UniqueConstraint("local_type", "local_id", "remote_type", name="uq_crm_mapping_local_remote_type"),
        Index("ix_crm_mapping_remote", "remote_type", "remote_id"),
    )

    local_type: Mapped[str] = mapped_column(String(50))  # booking, customer_email
    local_id: Mapped[str] = mapped_column(String(255))
    remote_type: Mapped[str] = mapped_column(String(50))  # Contact, Lead, Opportunity
    remote_id: Mapped[str] = mapped_column(String(100))
    sync_status: Mapped[str] = mapped_column(String(20), default="synced")  # synced/stale/error
    last_sync: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        return f"<MappingRecord {self.local_type}:{self.local_id} -> {self.remote_type}:{self.remote_id}>"
