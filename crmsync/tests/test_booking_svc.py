"""Tests for booking CRUD feeding the sync queue."""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from crmsync.config import SyncSettings
from crmsync.models.queue import SyncQueueItem
from crmsync.services import booking_svc
from crmsync.sync.mapping_store import MappingStore


@pytest.fixture
def cfg():
    return SyncSettings(_env_file=None, queue_max_attempts=5)


async def _queued(db) -> list[tuple[str, str, int]]:
    rows = (await db.execute(select(SyncQueueItem).order_by(SyncQueueItem.created_at))).scalars().all()
    return [(r.operation, r.local_id, r.priority) for r in rows]


@pytest.mark.asyncio
async def test_create_booking_enqueues_create(db, cfg):
    booking = await booking_svc.create_booking(
        db, cfg=cfg, customer_email="a@x.com", customer_last_name="Doe", booking_date=date(2026, 5, 1)
    )
    assert booking.id is not None
    item = (await db.execute(select(SyncQueueItem))).scalar_one()
    assert (item.operation, item.local_type, item.local_id) == ("create", "booking", str(booking.id))
    assert item.priority == 10
    assert item.max_attempts == 5


@pytest.mark.asyncio
async def test_create_booking_without_auto_sync(db):
    cfg = SyncSettings(_env_file=None, sync_on_booking=False)
    await booking_svc.create_booking(db, cfg=cfg, customer_email="a@x.com")
    assert await _queued(db) == []


@pytest.mark.asyncio
async def test_create_booking_rejects_unknown_status(db, cfg):
    with pytest.raises(ValueError):
        await booking_svc.create_booking(db, cfg=cfg, status="archived")


@pytest.mark.asyncio
async def test_change_status_enqueues_priority_update(db, cfg):
    booking = await booking_svc.create_booking(db, cfg=cfg, customer_email="a@x.com")

    updated = await booking_svc.change_status(db, booking.id, "acknowledged", cfg=cfg)
    unchanged = await booking_svc.change_status(db, booking.id, "acknowledged", cfg=cfg)

    assert updated.status == unchanged.status == "acknowledged"
    ops = [(op, prio) for op, _, prio in await _queued(db)]
    assert ops.count(("update_status", 5)) == 1


@pytest.mark.asyncio
async def test_change_status_validates(db, cfg):
    booking = await booking_svc.create_booking(db, cfg=cfg, customer_email="a@x.com")
    with pytest.raises(ValueError):
        await booking_svc.change_status(db, booking.id, "done", cfg=cfg)
    assert await booking_svc.change_status(db, 9999, "completed", cfg=cfg) is None


@pytest.mark.asyncio
async def test_update_booking_marks_mappings_stale(db, cfg):
    booking = await booking_svc.create_booking(db, cfg=cfg, customer_email="A@x.com")
    store = MappingStore(db)
    await store.upsert("customer_email", "a@x.com", "Contact", "003A")
    await store.upsert("booking", str(booking.id), "Opportunity", "006A")
    await db.commit()

    await booking_svc.update_booking(db, booking.id, cfg=cfg, notes="Moved to 11:00")

    statuses = {r.remote_type: r.sync_status for r in await store.list_for_local("customer_email", "a@x.com")}
    statuses.update({r.remote_type: r.sync_status for r in await store.list_for_local("booking", str(booking.id))})
    assert statuses == {"Contact": "stale", "Opportunity": "stale"}
    assert sorted(op for op, _, _ in await _queued(db)) == ["create", "update"]


@pytest.mark.asyncio
async def test_update_booking_refuses_status_changes(db, cfg):
    booking = await booking_svc.create_booking(db, cfg=cfg, customer_email="a@x.com")
    with pytest.raises(ValueError):
        await booking_svc.update_booking(db, booking.id, cfg=cfg, status="completed")


@pytest.mark.asyncio
async def test_delete_booking_enqueues_delete(db, cfg):
    booking = await booking_svc.create_booking(db, cfg=cfg, customer_email="a@x.com")
    booking_id = booking.id

    assert await booking_svc.delete_booking(db, booking_id, cfg=cfg) is True
    assert await booking_svc.get_booking(db, booking_id) is None
    assert ("delete", str(booking_id), 10) in await _queued(db)
    assert await booking_svc.delete_booking(db, booking_id, cfg=cfg) is False
