"""Field mapping rule management."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.field_mapping import FieldMappingRule
from ..schemas.sync import FieldMappingCreate, FieldMappingResponse
from ..sync.field_mapper import seed_default_rules

router = APIRouter(prefix="/field-mappings", tags=["field-mappings"])


@router.get("/", response_model=list[FieldMappingResponse])
async def list_field_mappings(object_type: str | None = None, db: AsyncSession = Depends(get_db)):
    stmt = select(FieldMappingRule).order_by(FieldMappingRule.object_type, FieldMappingRule.remote_field)
    if object_type:
        stmt = stmt.where(FieldMappingRule.object_type == object_type)
    return list((await db.execute(stmt)).scalars().all())


@router.post("/", response_model=FieldMappingResponse, status_code=201)
async def create_field_mapping(data: FieldMappingCreate, db: AsyncSession = Depends(get_db)):
    rule = FieldMappingRule(**data.model_dump())
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


@router.post("/seed")
async def seed_field_mappings(db: AsyncSession = Depends(get_db)):
    return {"seeded": await seed_default_rules(db)}


@router.delete("/{rule_id}")
async def delete_field_mapping(rule_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    rule = await db.get(FieldMappingRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Field mapping not found")
    await db.delete(rule)
    await db.commit()
    return {"deleted": True}
