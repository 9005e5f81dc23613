"""Background worker that drains the sync queue on an interval."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .config import SyncSettings, settings as default_settings
from .database import async_session_factory
from .remote.client import RemoteClient
from .sync.engine import SyncEngine
from .sync.processor import ProcessStats, QueueProcessor

logger = logging.getLogger(__name__)


class QueueWorker:
    """Polls the sync queue and processes one batch per tick."""

    def __init__(self, settings: SyncSettings | None = None, session_factory=None) -> None:
        self.settings = settings or default_settings
        self.session_factory = session_factory or async_session_factory
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._warned_unconfigured = False

    def start(self) -> None:
        if self._task is not None or not self.settings.queue_worker_enabled:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="crm-sync-queue-worker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None

    async def run_once(self) -> ProcessStats | None:
        """Process one batch; None when the remote CRM is not configured."""
        if not self.settings.remote_configured:
            if not self._warned_unconfigured:
                logger.warning("Remote CRM not configured; sync queue processing skipped")
                self._warned_unconfigured = True
            return None
        self._warned_unconfigured = False
        async with self.session_factory() as db, RemoteClient.from_settings(self.settings) as client:
            processor = QueueProcessor(SyncEngine.build(db, client, self.settings))
            return await processor.process(self.settings.queue_batch_size)

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # pragma: no cover
                logger.exception("Sync queue worker tick failed")
            await asyncio.sleep(self.settings.queue_poll_interval_seconds)


queue_worker = QueueWorker()
