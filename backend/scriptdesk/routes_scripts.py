from __future__ import annotations

import logging
from io import BytesIO
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .http_errors import DOMAIN_ERRORS, to_http
from .models import LEGACY_SCRIPT_STATUSES, Contractor, Script, ScriptStatus
from .routes_auth import AdminDep, ContractorDep
from .schemas import ScriptAssign, ScriptRead, ScriptStatusUpdate, ScriptSubmitResult
from .services import storage
from .services.intake import submit_script
from .services.workflow import assign_script_to_judge, delete_script_admin, set_script_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scripts", tags=["scripts"])
admin_router = APIRouter(prefix="/api/admin/scripts", tags=["admin"])
contractor_router = APIRouter(prefix="/api/contractor", tags=["contractor"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.post("", response_model=ScriptSubmitResult, status_code=status.HTTP_201_CREATED)
async def create_script(
    session: SessionDep,
    title: str | None = Form(default=None),
    author_name: str | None = Form(default=None),
    author_email: str | None = Form(default=None),
    author_phone: str | None = Form(default=None),
    tier_id: str | None = Form(default=None),
    discount_code: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
) -> ScriptSubmitResult:
    content = await file.read() if file else None
    try:
        script, checkout_url = await submit_script(
            session,
            title=title,
            author_name=author_name,
            author_email=author_email,
            author_phone=author_phone,
            tier_id=tier_id,
            discount_code=discount_code,
            filename=file.filename if file else None,
            content=content,
        )
    except DOMAIN_ERRORS as exc:
        logger.warning(f"[intake] rejected submission {title!r}: {exc}")
        raise to_http(exc) from exc
    return ScriptSubmitResult(script=ScriptRead.model_validate(script), checkout_url=checkout_url)


def _status_filter(value: ScriptStatus) -> list[str]:
    folded = [legacy for legacy, target in LEGACY_SCRIPT_STATUSES.items() if target == value.value]
    return [value.value, *folded]


@admin_router.get("", response_model=list[ScriptRead])
async def list_scripts(
    session: SessionDep,
    _: AdminDep,
    status_: ScriptStatus | None = Query(default=None, alias="status"),
    payment_status: str | None = Query(default=None),
    judge_id: int | None = Query(default=None),
    q: str | None = Query(default=None),
) -> list[ScriptRead]:
    stmt = select(Script).order_by(Script.created_at.desc(), Script.id.desc())
    if status_:
        stmt = stmt.where(Script.status.in_(_status_filter(status_)))
    if payment_status:
        stmt = stmt.where(Script.payment_status == payment_status)
    if judge_id is not None:
        stmt = stmt.where(Script.assigned_judge_id == judge_id)
    if q:
        like = f"%{q.strip()}%"
        stmt = stmt.where(Script.title.ilike(like) | Script.author_name.ilike(like) | Script.author_email.ilike(like))
    res = await session.execute(stmt)
    return [ScriptRead.model_validate(s) for s in res.scalars().all()]


@admin_router.get("/export")
async def export_scripts(session: SessionDep, _: AdminDep):
    result = await session.execute(
        select(Script, Contractor)
        .join(Contractor, Contractor.id == Script.assigned_judge_id, isouter=True)
        .order_by(Script.id)
    )
    wb = Workbook()
    ws = wb.active
    ws.title = "scripts"
    headers = [
        "id",
        "title",
        "author_name",
        "author_email",
        "author_phone",
        "tier",
        "amount_usd",
        "discount_code",
        "payment_status",
        "status",
        "contractor",
        "submitted_at",
        "reviewed_at",
    ]
    ws.append(headers)
    for script, contractor in result.all():
        ws.append(
            [
                script.id,
                script.title,
                script.author_name,
                script.author_email,
                script.author_phone,
                script.tier_name,
                script.amount / 100,
                script.discount_code,
                script.payment_status,
                LEGACY_SCRIPT_STATUSES.get(script.status, script.status),
                contractor.name if contractor else None,
                script.created_at.replace(tzinfo=None) if script.created_at else None,
                script.reviewed_at.replace(tzinfo=None) if script.reviewed_at else None,
            ]
        )

    stream = BytesIO()
    wb.save(stream)
    stream.seek(0)
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=scripts.xlsx"},
    )


@admin_router.get("/{script_id}", response_model=ScriptRead)
async def get_script(script_id: int, session: SessionDep, _: AdminDep) -> ScriptRead:
    script = await session.get(Script, script_id)
    if not script:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Script not found")
    return ScriptRead.model_validate(script)


@admin_router.post("/{script_id}/assign", response_model=ScriptRead)
async def assign_script(script_id: int, payload: ScriptAssign, session: SessionDep, admin: AdminDep) -> ScriptRead:
    try:
        script = await assign_script_to_judge(session, script_id, payload.judge_id, actor=admin.actor)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return ScriptRead.model_validate(script)


@admin_router.put("/{script_id}/status", response_model=ScriptRead)
async def update_script_status(
    script_id: int, payload: ScriptStatusUpdate, session: SessionDep, admin: AdminDep
) -> ScriptRead:
    try:
        script = await set_script_status(session, script_id, payload.status, actor=admin.actor)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return ScriptRead.model_validate(script)


@admin_router.delete("/{script_id}")
async def delete_script(script_id: int, session: SessionDep, admin: AdminDep):
    try:
        result = await delete_script_admin(session, script_id, actor=admin.actor)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    result["file_removed"] = storage.remove(storage.SCRIPTS_BUCKET, result.pop("storage_key"))
    return {"ok": True, **result}


@contractor_router.get("/scripts", response_model=list[ScriptRead])
async def my_scripts(session: SessionDep, contractor: ContractorDep) -> list[ScriptRead]:
    res = await session.execute(
        select(Script)
        .where(Script.assigned_judge_id == contractor.id)
        .order_by(Script.created_at.desc(), Script.id.desc())
    )
    return [ScriptRead.model_validate(s) for s in res.scalars().all()]
