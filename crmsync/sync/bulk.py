"""Bulk backfill of bookings that have never been synced."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .engine import SyncEngine

logger = logging.getLogger(__name__)


@dataclass
class BulkSyncReport:
    synced: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.synced.values())


async def run_bulk_sync(engine: SyncEngine, kinds: list[str] | None = None, limit: int = 100) -> BulkSyncReport:
    """Sync up to ``limit`` unmapped entities per enabled kind.

    ``kinds`` narrows the run to the given remote types; disabled kinds are
    skipped either way.
    """
    report = BulkSyncReport()
    for translator in engine.enabled_translators():
        if kinds and translator.remote_type not in kinds:
            continue
        synced, errors = await translator.sync_all(limit)
        report.synced[translator.remote_type] = synced
        report.errors.extend(errors)
        logger.info("Bulk sync %s: %d synced, %d errors", translator.remote_type, synced, len(errors))
    return report
