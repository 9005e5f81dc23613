"""Append-only audit trail of sync outcomes for operators."""

from __future__ import annotations

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class SyncLog(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "crm_sync_log"

    direction: Mapped[str] = mapped_column(String(10))  # outbound/inbound
    action: Mapped[str] = mapped_column(String(50))
    local_type: Mapped[str | None] = mapped_column(String(50), default=None)
    local_id: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    remote_type: Mapped[str | None] = mapped_column(String(50), default=None)
    remote_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    status: Mapped[str] = mapped_column(String(10))  # success/error
    message: Mapped[str | None] = mapped_column(Text, default=None)
    request_data: Mapped[dict | None] = mapped_column(JSON, default=None)

    def __repr__(self) -> str:
        return f"<SyncLog [{self.status}] {self.direction} {self.action}>"
