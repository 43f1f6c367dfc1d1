from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import ActivityLog
from .routes_auth import AdminDep
from .schemas import ActivityRead

router = APIRouter(prefix="/api/admin/activity", tags=["admin"])


@router.get("", response_model=list[ActivityRead])
async def list_activity(
    _: AdminDep,
    session: AsyncSession = Depends(get_session),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
) -> list[ActivityRead]:
    stmt = select(ActivityLog).order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    if entity_type:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(ActivityLog.entity_id == entity_id)
    res = await session.execute(stmt.limit(limit).offset(offset))
    return [ActivityRead.model_validate(a) for a in res.scalars().all()]
