from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .routes_auth import AdminDep
from .schemas import SettingWrite
from .services import site_settings
from .services.activity import log_activity

router = APIRouter(prefix="/api/admin/settings", tags=["admin"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.get("")
async def list_settings(session: SessionDep, _: AdminDep) -> dict:
    return await site_settings.get_all(session)


@router.get("/{key}")
async def get_setting(key: str, session: SessionDep, _: AdminDep):
    settings = await site_settings.get_all(session)
    if key not in settings:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    return {"key": key, "value": settings[key]}


@router.put("/{key}")
async def put_setting(key: str, payload: SettingWrite, session: SessionDep, admin: AdminDep):
    log_activity(session, "setting_updated", "setting", None, admin.actor, {"key": key})
    row = await site_settings.upsert(session, key, payload.value)
    return {"key": row.setting_key, "value": row.setting_value}


@router.delete("/{key}")
async def delete_setting(key: str, session: SessionDep, _: AdminDep):
    if not await site_settings.remove(session, key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    return {"ok": True}
