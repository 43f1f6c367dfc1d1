from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import Contractor, ContractorStatus, Script, ScriptStatus
from .routes_auth import AdminDep, hash_password
from .schemas import ContractorRead, ContractorSignup, ContractorUpdate
from .services.activity import log_activity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contractors", tags=["contractors"])
admin_router = APIRouter(prefix="/api/admin/contractors", tags=["admin"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def _get_contractor(session: AsyncSession, contractor_id: int) -> Contractor:
    contractor = await session.get(Contractor, contractor_id)
    if not contractor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contractor not found")
    return contractor


@router.post("/signup", response_model=ContractorRead, status_code=status.HTTP_201_CREATED)
async def signup(payload: ContractorSignup, session: SessionDep) -> ContractorRead:
    res = await session.execute(select(Contractor.id).where(func.lower(Contractor.email) == payload.email))
    if res.scalar() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An account with this email already exists")
    contractor = Contractor(
        name=payload.name.strip(),
        email=payload.email,
        password_hash=hash_password(payload.password),
        specialization=payload.specialization,
        status=ContractorStatus.pending.value,
        current_workload=0,
        total_scripts_reviewed=0,
    )
    session.add(contractor)
    await session.flush()
    log_activity(session, "contractor_signup", "contractor", contractor.id, payload.email)
    await session.commit()
    await session.refresh(contractor)
    logger.info(f"[contractors] signup {contractor.email} (id={contractor.id})")
    return ContractorRead.model_validate(contractor)


@admin_router.get("", response_model=list[ContractorRead])
async def list_contractors(
    session: SessionDep,
    _: AdminDep,
    status_: ContractorStatus | None = Query(default=None, alias="status"),
) -> list[ContractorRead]:
    stmt = select(Contractor).order_by(Contractor.created_at.desc(), Contractor.id.desc())
    if status_:
        stmt = stmt.where(Contractor.status == status_.value)
    res = await session.execute(stmt)
    return [ContractorRead.model_validate(c) for c in res.scalars().all()]


async def _set_status(session: AsyncSession, contractor_id: int, new_status: ContractorStatus, actor: str) -> Contractor:
    contractor = await _get_contractor(session, contractor_id)
    contractor.status = new_status.value
    log_activity(session, f"contractor_{new_status.value}", "contractor", contractor.id, actor, {"email": contractor.email})
    await session.commit()
    await session.refresh(contractor)
    return contractor


@admin_router.post("/{contractor_id}/approve", response_model=ContractorRead)
async def approve_contractor(contractor_id: int, session: SessionDep, admin: AdminDep) -> ContractorRead:
    contractor = await _set_status(session, contractor_id, ContractorStatus.approved, admin.actor)
    return ContractorRead.model_validate(contractor)


@admin_router.post("/{contractor_id}/decline", response_model=ContractorRead)
async def decline_contractor(contractor_id: int, session: SessionDep, admin: AdminDep) -> ContractorRead:
    contractor = await _set_status(session, contractor_id, ContractorStatus.declined, admin.actor)
    return ContractorRead.model_validate(contractor)


@admin_router.patch("/{contractor_id}", response_model=ContractorRead)
async def update_contractor(
    contractor_id: int, payload: ContractorUpdate, session: SessionDep, _: AdminDep
) -> ContractorRead:
    contractor = await _get_contractor(session, contractor_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(contractor, field, value)
    await session.commit()
    await session.refresh(contractor)
    return ContractorRead.model_validate(contractor)


@admin_router.delete("/{contractor_id}")
async def delete_contractor(contractor_id: int, session: SessionDep, admin: AdminDep):
    contractor = await _get_contractor(session, contractor_id)
    res = await session.execute(select(Script).where(Script.assigned_judge_id == contractor_id))
    released = 0
    for script in res.scalars().all():
        script.assigned_judge_id = None
        if script.status == ScriptStatus.assigned.value:
            script.status = ScriptStatus.pending.value
            released += 1
    log_activity(
        session, "contractor_deleted", "contractor", contractor_id, admin.actor,
        {"email": contractor.email, "scripts_released": released},
    )
    await session.delete(contractor)
    await session.commit()
    logger.info(f"[contractors] deleted {contractor_id}, {released} script(s) back to pending")
    return {"ok": True, "scripts_released": released}
