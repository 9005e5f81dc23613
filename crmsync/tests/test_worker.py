"""Tests for the queue worker and bulk backfill."""

from __future__ import annotations

import pytest

from crmsync.config import SyncSettings
from crmsync.sync.bulk import run_bulk_sync
from crmsync.sync.engine import SyncEngine
from crmsync.worker import QueueWorker


@pytest.mark.asyncio
async def test_worker_skips_when_remote_not_configured(caplog):
    worker = QueueWorker(settings=SyncSettings(_env_file=None, instance_url="", access_token=""))
    with caplog.at_level("WARNING"):
        assert await worker.run_once() is None
        assert await worker.run_once() is None
    assert sum("not configured" in r.message for r in caplog.records) == 1


@pytest.mark.asyncio
async def test_worker_disabled_does_not_start():
    worker = QueueWorker(settings=SyncSettings(_env_file=None, queue_worker_enabled=False))
    worker.start()
    assert worker._task is None
    await worker.stop()


@pytest.mark.asyncio
async def test_bulk_sync_covers_enabled_kinds(db, remote, fake_crm, make_booking):
    settings = SyncSettings(_env_file=None, sync_contacts=True, sync_leads=True, create_opportunities=True)
    engine = SyncEngine.build(db, remote, settings)
    await make_booking(customer_email="a@x.com")
    await make_booking(customer_email="b@x.com")

    report = await run_bulk_sync(engine, limit=10)

    # Contacts are synced first, so leads are skipped for the same customers.
    assert report.synced == {"Contact": 2, "Lead": 0, "Opportunity": 2}
    assert report.errors == []
    assert report.total == 4


@pytest.mark.asyncio
async def test_bulk_sync_can_narrow_kinds(db, remote, fake_crm, make_booking):
    settings = SyncSettings(_env_file=None, sync_contacts=True, create_opportunities=True)
    await make_booking()

    report = await run_bulk_sync(SyncEngine.build(db, remote, settings), kinds=["Opportunity"])

    assert report.synced == {"Opportunity": 1}
    assert "Contact" not in fake_crm.records
