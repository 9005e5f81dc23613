"""Sync API schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, field_validator

from ..sync.field_mapper import SyncDirection, Transform


class QueueItemResponse(BaseModel):
    id: uuid.UUID
    operation: str
    local_type: str
    local_id: str
    priority: int
    status: str
    attempts: int
    max_attempts: int
    scheduled_at: datetime
    error_message: str | None = None
    processed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProcessResult(BaseModel):
    claimed: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    released: int = 0
    purged: int = 0
    lost: int = 0


class BulkSyncRequest(BaseModel):
    kinds: list[str] | None = None
    limit: int = 100


class BulkSyncResult(BaseModel):
    synced: dict[str, int] = {}
    errors: list[str] = []


class SyncLogResponse(BaseModel):
    id: uuid.UUID
    direction: str
    action: str
    local_type: str | None = None
    local_id: str | None = None
    remote_type: str | None = None
    remote_id: str | None = None
    status: str
    message: str | None = None
    request_data: dict[str, Any] | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class SyncLogPage(BaseModel):
    items: list[SyncLogResponse]
    total: int
    page: int
    per_page: int


class FieldMappingCreate(BaseModel):
    object_type: str
    local_field: str
    remote_field: str
    sync_direction: str = SyncDirection.BOTH.value
    transform: str = Transform.IDENTITY.value
    is_active: bool = True

    @field_validator("sync_direction")
    @classmethod
    def _known_direction(cls, value: str) -> str:
        SyncDirection(value)
        return value

    @field_validator("transform")
    @classmethod
    def _known_transform(cls, value: str) -> str:
        Transform(value)
        return value


class FieldMappingResponse(FieldMappingCreate):
    id: uuid.UUID

    model_config = {"from_attributes": True}


class WebhookResult(BaseModel):
    received: int = 0
    applied: int = 0
    ignored: int = 0
    errors: list[str] = []
