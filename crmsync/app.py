"""FastAPI application for the CRM sync service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .worker import queue_worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev)
    if "sqlite" in settings.database_url:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    if settings.is_production and not settings.webhook_secret:
        logger.warning("CRMSYNC_WEBHOOK_SECRET is not set; inbound webhooks will be rejected")
    queue_worker.start()
    yield
    await queue_worker.stop()


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import field_mappings, health, queue, sync, webhooks  # noqa: E402

app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(queue.router)
app.include_router(sync.router)
app.include_router(field_mappings.router)
