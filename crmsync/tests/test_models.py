"""Test model creation and constraints."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crmsync.models.booking import Booking, Service
from crmsync.models.mapping import MappingRecord
from crmsync.models.queue import SyncQueueItem


@pytest.mark.asyncio
async def test_booking_with_service(db: AsyncSession):
    service = Service(name="Massage")
    db.add(service)
    await db.flush()
    db.add(Booking(customer_email="a@x.com", service_id=service.id))
    await db.commit()

    stmt = select(Booking).execution_options(populate_existing=True)
    booking = (await db.execute(stmt)).scalar_one()
    assert booking.status == "pending"
    assert booking.service.name == "Massage"
    assert booking.customer_name == "Customer"


@pytest.mark.asyncio
async def test_queue_item_defaults(db: AsyncSession):
    item = SyncQueueItem(operation="create", local_type="booking", local_id="1")
    db.add(item)
    await db.commit()
    assert item.status == "pending"
    assert item.priority == 10
    assert item.attempts == 0
    assert item.max_attempts == 3
    assert item.scheduled_at is not None


@pytest.mark.asyncio
async def test_mapping_unique_per_local_key_and_remote_type(db: AsyncSession):
    db.add(MappingRecord(local_type="customer_email", local_id="a@x.com", remote_type="Contact", remote_id="003A"))
    await db.commit()
    db.add(MappingRecord(local_type="customer_email", local_id="a@x.com", remote_type="Contact", remote_id="003B"))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()
