"""Sync queue inspection and operator actions."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..deps import get_remote_client
from ..remote.client import RemoteClient
from ..schemas.sync import ProcessResult, QueueItemResponse
from ..sync import queue_svc
from ..sync.engine import SyncEngine
from ..sync.processor import QueueProcessor

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("/", response_model=list[QueueItemResponse])
async def list_queue(
    status: str | None = None,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    return await queue_svc.list_items(db, status=status, limit=min(max(limit, 1), 500))


@router.get("/stats")
async def queue_stats(db: AsyncSession = Depends(get_db)):
    return await queue_svc.status_counts(db)


@router.post("/process", response_model=ProcessResult)
async def process_queue(
    limit: int | None = None,
    db: AsyncSession = Depends(get_db),
    client: RemoteClient = Depends(get_remote_client),
):
    """Run one processing batch now."""
    if not settings.remote_configured:
        raise HTTPException(status_code=409, detail="Remote CRM not configured")
    stats = await QueueProcessor(SyncEngine.build(db, client, settings)).process(limit)
    return ProcessResult(
        claimed=stats.claimed, completed=stats.completed, retried=stats.retried,
        failed=stats.failed, released=stats.released, purged=stats.purged, lost=stats.lost,
    )


@router.get("/{item_id}", response_model=QueueItemResponse)
async def get_queue_item(item_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    item = await queue_svc.get_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return item


@router.post("/{item_id}/retry", response_model=QueueItemResponse)
async def retry_queue_item(item_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    item = await queue_svc.get_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Queue item not found")
    try:
        return await queue_svc.retry_item(db, item)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
