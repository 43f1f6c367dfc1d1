from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import Contact
from .routes_auth import AdminDep
from .schemas import ContactCreate, ContactRead, ContactStatusUpdate
from .services import site_settings
from .services.contact_cache import get_contact_cache
from .services.notify import notify_new_contact

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contacts", tags=["contacts"])
admin_router = APIRouter(prefix="/api/admin/contacts", tags=["admin"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def _from_cache(entry: dict[str, Any]) -> ContactRead:
    return ContactRead(
        id=entry["local_id"],
        name=entry["name"],
        email=entry["email"],
        phone=entry.get("phone"),
        subject=entry.get("subject"),
        message=entry["message"],
        status=entry.get("status") or "new",
        created_at=entry.get("cached_at"),
        source="local",
    )


@router.post("", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
async def create_contact(payload: ContactCreate, session: SessionDep) -> ContactRead:
    """Store a contact message; mirrored to the local cache so a failed insert is not lost."""
    cache = get_contact_cache()
    data = payload.model_dump()
    contact = Contact(**data)
    session.add(contact)
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception(f"[contacts] database insert failed for {payload.email}, kept in local cache")
        entry = cache.add(data)
        return _from_cache(entry)

    await session.refresh(contact)
    cache.add(data, db_id=contact.id)
    if await site_settings.is_enabled(session, "notify_new_contact"):
        await notify_new_contact(contact.name, contact.email, contact.subject)
    return ContactRead.model_validate(contact)


@admin_router.get("", response_model=list[ContactRead])
async def list_contacts(session: SessionDep, _: AdminDep) -> list[ContactRead]:
    res = await session.execute(select(Contact).order_by(Contact.created_at.desc(), Contact.id.desc()))
    items = [ContactRead.model_validate(c) for c in res.scalars().all()]
    items.extend(_from_cache(e) for e in get_contact_cache().unsynced())
    items.sort(key=lambda c: c.created_at.timestamp() if c.created_at else 0, reverse=True)
    return items


@admin_router.get("/stats")
async def contact_stats(session: SessionDep, _: AdminDep):
    res = await session.execute(select(Contact.status))
    by_status: dict[str, int] = {}
    for (value,) in res.all():
        by_status[value] = by_status.get(value, 0) + 1
    cache = get_contact_cache()
    pending = cache.unsynced()
    for entry in pending:
        key = entry.get("status") or "new"
        by_status[key] = by_status.get(key, 0) + 1
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "pending_sync": len(pending),
        "last_sync_at": cache.last_sync_at,
    }


@admin_router.post("/sync")
async def sync_contacts(session: SessionDep, _: AdminDep):
    """Push cached submissions that never reached the database."""
    return await get_contact_cache().reconcile(session)


def _db_id(ident: str) -> int | None:
    return int(ident) if ident.isdigit() else None


@admin_router.put("/{ident}/status", response_model=ContactRead)
async def update_contact_status(
    ident: str, payload: ContactStatusUpdate, session: SessionDep, _: AdminDep
) -> ContactRead:
    cache = get_contact_cache()
    db_id = _db_id(ident)
    if db_id is None:
        if not cache.update_status(ident, payload.status.value):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
        entry = next(e for e in cache.entries() if e["local_id"] == ident)
        return _from_cache(entry)

    contact = await session.get(Contact, db_id)
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    contact.status = payload.status.value
    await session.commit()
    await session.refresh(contact)
    cache.update_status(db_id, payload.status.value)
    return ContactRead.model_validate(contact)


@admin_router.delete("/{ident}")
async def delete_contact(ident: str, session: SessionDep, _: AdminDep):
    cache = get_contact_cache()
    db_id = _db_id(ident)
    if db_id is None:
        if not cache.remove(ident):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
        return {"ok": True}

    contact = await session.get(Contact, db_id)
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")
    await session.delete(contact)
    await session.commit()
    cache.remove(db_id)
    return {"ok": True}
