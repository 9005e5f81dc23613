"""Local booking entities (service, staff, booking).

These belong to the booking system; the sync engine only reads them and
writes back inbound field values and statuses.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import JSON, Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

BOOKING_STATUSES: tuple[str, ...] = ("pending", "acknowledged", "completed", "cancelled", "missed")


class Service(TimestampMixin, Base):
    __tablename__ = "service"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))

    def __repr__(self) -> str:
        return f"<Service {self.name!r}>"


class Staff(TimestampMixin, Base):
    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))

    def __repr__(self) -> str:
        return f"<Staff {self.name!r}>"


class Booking(TimestampMixin, Base):
    __tablename__ = "booking"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)

    customer_email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    customer_first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    customer_last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    customer_phone: Mapped[str | None] = mapped_column(String(50), default=None)

    service_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("service.id", ondelete="SET NULL"), default=None
    )
    staff_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("staff.id", ondelete="SET NULL"), default=None
    )
    booking_date: Mapped[date | None] = mapped_column(Date, default=None)
    booking_time: Mapped[str | None] = mapped_column(String(10), default=None)  # HH:MM
    total_amount: Mapped[float | None] = mapped_column(Float, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    # Free-form fields written by inbound sync for rules targeting non-column fields.
    meta: Mapped[dict | None] = mapped_column(JSON, default=None)

    service: Mapped[Service | None] = relationship(lazy="selectin")
    staff: Mapped[Staff | None] = relationship(lazy="selectin")

    @property
    def customer_name(self) -> str:
        parts = [p for p in (self.customer_first_name, self.customer_last_name) if p]
        return " ".join(parts) or "Customer"

    def __repr__(self) -> str:
        return f"<Booking #{self.id} {self.status}>"
