"""Key/value site settings bag (`site_settings` table)."""
from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import SiteSetting

DEFAULTS: dict[str, Any] = {
    "site_title": "Honey & Hemlock Productions",
    "support_email": "support@honeyandhemlock.productions",
    "notify_new_submission": True,
    "notify_review_submitted": True,
    "notify_new_contact": True,
}


async def get_all(session: AsyncSession) -> dict[str, Any]:
    res = await session.execute(select(SiteSetting).order_by(SiteSetting.setting_key))
    stored = {row.setting_key: row.setting_value for row in res.scalars().all()}
    return {**DEFAULTS, **stored}


async def get_value(session: AsyncSession, key: str, default: Any = None) -> Any:
    row = await session.get(SiteSetting, key)
    if row is not None:
        return row.setting_value
    return DEFAULTS.get(key, default)


async def is_enabled(session: AsyncSession, key: str) -> bool:
    value = await get_value(session, key, True)
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


async def upsert(session: AsyncSession, key: str, value: Any) -> SiteSetting:
    row = await session.get(SiteSetting, key)
    if row is None:
        row = SiteSetting(setting_key=key, setting_value=value)
        session.add(row)
    else:
        row.setting_value = value
    await session.commit()
    await session.refresh(row)
    return row


async def remove(session: AsyncSession, key: str) -> bool:
    row = await session.get(SiteSetting, key)
    if row is None:
        return False
    await session.delete(row)
    await session.commit()
    return True
