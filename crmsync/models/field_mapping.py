"""Configured field mapping rules between local fields and remote fields."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin


class FieldMappingRule(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "crm_field_mapping"

    object_type: Mapped[str] = mapped_column(String(50), index=True)
    local_field: Mapped[str] = mapped_column(String(100))
    remote_field: Mapped[str] = mapped_column(String(100))
    sync_direction: Mapped[str] = mapped_column(String(20), default="both")  # both/to_remote/from_remote
    transform: Mapped[str] = mapped_column(String(20), default="identity")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<FieldMappingRule {self.object_type}.{self.remote_field} <- {self.local_field}>"
