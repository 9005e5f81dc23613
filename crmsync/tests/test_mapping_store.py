"""Tests for the local <-> remote identity mapping store."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from crmsync.models.mapping import MappingRecord
from crmsync.sync.mapping_store import MappingStore


@pytest.mark.asyncio
async def test_upsert_then_find_both_ways(db):
    store = MappingStore(db)
    await store.upsert("customer_email", "a@x.com", "Contact", "003A")
    await db.commit()

    assert await store.find("customer_email", "a@x.com", "Contact") == "003A"
    assert await store.find_by_remote("Contact", "003A") == ("customer_email", "a@x.com")
    assert await store.find("customer_email", "a@x.com", "Lead") is None


@pytest.mark.asyncio
async def test_upsert_is_idempotent_and_replaces_remote_id(db):
    store = MappingStore(db)
    await store.upsert("booking", "5", "Opportunity", "006A")
    await store.mark("booking", "5", "Opportunity", "error")
    record = await store.upsert("booking", "5", "Opportunity", "006B")
    await db.commit()

    count = (await db.execute(select(func.count()).select_from(MappingRecord))).scalar()
    assert count == 1
    assert record.remote_id == "006B"
    assert record.sync_status == "synced"
    assert await store.find_by_remote("Opportunity", "006A") is None


@pytest.mark.asyncio
async def test_same_local_key_maps_to_each_remote_type(db):
    store = MappingStore(db)
    await store.upsert("customer_email", "a@x.com", "Contact", "003A")
    await store.upsert("customer_email", "a@x.com", "Lead", "00QA")
    await db.commit()

    rows = await store.list_for_local("customer_email", "a@x.com")
    assert {r.remote_type for r in rows} == {"Contact", "Lead"}


@pytest.mark.asyncio
async def test_remove_by_remote_id(db):
    store = MappingStore(db)
    await store.upsert("customer_email", "a@x.com", "Lead", "00QA")
    await db.commit()

    assert await store.remove("Lead", "00QA") == 1
    await db.commit()
    assert await store.find("customer_email", "a@x.com", "Lead") is None
    assert await store.remove("Lead", "00QA") == 0


@pytest.mark.asyncio
async def test_mark_status(db):
    store = MappingStore(db)
    assert await store.mark("booking", "1", "Opportunity", "stale") is False

    await store.upsert("booking", "1", "Opportunity", "006A")
    assert await store.mark("booking", "1", "Opportunity", "stale") is True
    await db.commit()
    rows = await store.list_for_local("booking", "1")
    assert rows[0].sync_status == "stale"

    with pytest.raises(ValueError):
        await store.mark("booking", "1", "Opportunity", "bogus")
