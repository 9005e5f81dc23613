"""Sync log and bulk backfill routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..deps import get_remote_client
from ..remote.client import RemoteClient
from ..schemas.sync import BulkSyncRequest, BulkSyncResult, SyncLogPage, SyncLogResponse
from ..sync.bulk import run_bulk_sync
from ..sync.engine import SyncEngine
from ..sync.sync_log import list_logs

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/logs", response_model=SyncLogPage)
async def sync_logs(page: int = 1, per_page: int = 20, db: AsyncSession = Depends(get_db)):
    rows, total = await list_logs(db, page=page, per_page=per_page)
    return SyncLogPage(
        items=[SyncLogResponse.model_validate(r) for r in rows],
        total=total,
        page=max(page, 1),
        per_page=min(max(per_page, 1), 200),
    )


@router.post("/bulk", response_model=BulkSyncResult)
async def bulk_sync(
    data: BulkSyncRequest,
    db: AsyncSession = Depends(get_db),
    client: RemoteClient = Depends(get_remote_client),
):
    """Backfill bookings that have never been synced."""
    if not settings.remote_configured:
        raise HTTPException(status_code=409, detail="Remote CRM not configured")
    report = await run_bulk_sync(SyncEngine.build(db, client, settings), kinds=data.kinds, limit=data.limit)
    return BulkSyncResult(synced=report.synced, errors=report.errors)


@router.get("/connection")
async def connection_status(client: RemoteClient = Depends(get_remote_client)):
    if not settings.remote_configured:
        return {"connected": False, "error": "Remote CRM not configured"}
    result = await client.check_connection()
    if result.ok:
        return {"connected": True}
    return {"connected": False, "error": str(result.error)}
