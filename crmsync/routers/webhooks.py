"""Inbound CRM webhook receiver."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..deps import get_remote_client
from ..remote.client import RemoteClient
from ..schemas.sync import WebhookResult
from ..security.webhooks import verify_webhook_signature
from ..sync.engine import SyncEngine
from ..sync.webhook import WebhookIngestion, get_adapter

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{provider}", response_model=WebhookResult)
async def receive_webhook(
    provider: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    client: RemoteClient = Depends(get_remote_client),
):
    """Receive a provider webhook and apply its events to local state."""
    raw_body = await request.body()
    verify_webhook_signature(request, raw_body)

    adapter = get_adapter(provider)
    if adapter is None:
        raise HTTPException(status_code=404, detail="Unknown webhook provider")

    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if payload is None:
        raise HTTPException(status_code=400, detail="Empty webhook body")

    try:
        events = adapter.parse(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    ingestion = WebhookIngestion(SyncEngine.build(db, client, settings))
    result = WebhookResult(received=len(events))
    for event in events:
        outcome = await ingestion.handle_event(event)
        if not outcome.ok:
            result.errors.append(str(outcome.error))
        elif outcome.value == "applied":
            result.applied += 1
        else:
            result.ignored += 1
    return result
