"""Booking service - CRUD that feeds the sync queue."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import SyncSettings, settings as default_settings
from ..models.booking import BOOKING_STATUSES, Booking
from ..sync.mapping_store import MappingStore
from ..sync.queue_svc import PRIORITY_DEFAULT, PRIORITY_STATUS, enqueue


async def _enqueue_for(db: AsyncSession, operation: str, booking_id: int, cfg: SyncSettings, priority: int) -> None:
    await enqueue(
        db, operation, "booking", booking_id,
        priority=priority, max_attempts=cfg.queue_max_attempts,
    )


async def get_booking(db: AsyncSession, booking_id: int) -> Booking | None:
    return await db.get(Booking, booking_id)


async def create_booking(db: AsyncSession, *, cfg: SyncSettings | None = None, **kwargs) -> Booking:
    """Create a booking and queue its initial sync."""
    cfg = cfg or default_settings
    status = kwargs.get("status", "pending")
    if status not in BOOKING_STATUSES:
        raise ValueError(f"Unknown booking status: {status}")
    booking = Booking(**kwargs)
    db.add(booking)
    await db.flush()
    if cfg.sync_on_booking:
        await _enqueue_for(db, "create", booking.id, cfg, PRIORITY_DEFAULT)
    await db.commit()
    await db.refresh(booking)
    return booking


async def update_booking(
    db: AsyncSession, booking_id: int, *, cfg: SyncSettings | None = None, **kwargs
) -> Booking | None:
    """Update booking fields; mappings go stale until the queued sync lands."""
    cfg = cfg or default_settings
    booking = await get_booking(db, booking_id)
    if not booking:
        return None
    if "status" in kwargs:
        raise ValueError("Use change_status to change a booking status")
    for key, value in kwargs.items():
        setattr(booking, key, value)

    mappings = MappingStore(db)
    await mappings.mark("booking", str(booking.id), "Opportunity", "stale")
    email = (booking.customer_email or "").strip().lower()
    if email:
        for remote_type in ("Contact", "Lead"):
            await mappings.mark("customer_email", email, remote_type, "stale")

    if cfg.sync_on_booking:
        await _enqueue_for(db, "update", booking.id, cfg, PRIORITY_DEFAULT)
    await db.commit()
    await db.refresh(booking)
    return booking


async def change_status(
    db: AsyncSession, booking_id: int, new_status: str, *, cfg: SyncSettings | None = None
) -> Booking | None:
    """Transition a booking's status and queue a status sync when it changed."""
    cfg = cfg or default_settings
    if new_status not in BOOKING_STATUSES:
        raise ValueError(f"Unknown booking status: {new_status}")
    booking = await get_booking(db, booking_id)
    if not booking:
        return None
    if booking.status == new_status:
        return booking
    booking.status = new_status
    if cfg.sync_on_status:
        await _enqueue_for(db, "update_status", booking.id, cfg, PRIORITY_STATUS)
    await db.commit()
    await db.refresh(booking)
    return booking


async def delete_booking(db: AsyncSession, booking_id: int, *, cfg: SyncSettings | None = None) -> bool:
    """Delete a booking and queue removal of its per-booking mappings."""
    cfg = cfg or default_settings
    booking = await get_booking(db, booking_id)
    if not booking:
        return False
    await _enqueue_for(db, "delete", booking.id, cfg, PRIORITY_DEFAULT)
    await db.delete(booking)
    await db.commit()
    return True
