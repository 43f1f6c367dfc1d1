"""
Review workspace (contractor) and review viewer / rubric export (admin).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from .db import get_session
from .http_errors import DOMAIN_ERRORS, to_http
from .models import Contractor, Script, ScriptReview
from .routes_auth import AdminDep, ContractorDep
from .rubric import extract_rubric
from .schemas import (
    PageNoteRead,
    PageNoteSave,
    ReviewOpen,
    ReviewRead,
    ReviewSubmit,
    RubricRead,
    RubricSave,
    ScriptRead,
    WorkspaceRead,
)
from .services import reviews, site_settings, storage
from .services.notify import notify_review_submitted
from .services.pdf_export import render_rubric_pdf
from .services.pricing import tier_granularity
from .services.workflow import submit_script_review
from .settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["reviews"])
admin_router = APIRouter(prefix="/api/admin/reviews", tags=["admin"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]

RUBRIC_FIELDS_ONLY = set(RubricSave.model_fields) - {"version"}


def _viewer_mode(script: Script) -> str:
    name = script.file_name or script.storage_key or script.file_url or ""
    return "pdf" if Path(name.split("?")[0]).suffix.lower() == ".pdf" else "embed"


def _file_url(script: Script) -> str | None:
    if script.storage_key:
        return storage.signed_url(storage.SCRIPTS_BUCKET, script.storage_key)
    return script.file_url


def _rubric_read(row, page_number: int | None = None) -> RubricRead:
    return RubricRead(**extract_rubric(row), version=row.version, page_number=page_number)


async def _own_review(session: AsyncSession, review_id: int, contractor: Contractor) -> ScriptReview:
    try:
        return await reviews.get_review(session, review_id, judge_id=contractor.id)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc


@router.post("/open", response_model=WorkspaceRead)
async def open_workspace(payload: ReviewOpen, session: SessionDep, contractor: ContractorDep) -> WorkspaceRead:
    """Open (creating on first visit) the contractor's review for an assigned script."""
    try:
        review, script = await reviews.open_review(session, payload.script_id, contractor.id)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    notes = await reviews.list_page_notes(session, review.id)
    return WorkspaceRead(
        review=ReviewRead.model_validate(review),
        script=ScriptRead.model_validate(script),
        granularity=tier_granularity(script.tier_id),
        viewer_mode=_viewer_mode(script),
        file_url=_file_url(script),
        page_notes={n.page_number: n.note_content for n in notes},
    )


@router.get("/{review_id}", response_model=ReviewRead)
async def get_review(review_id: int, session: SessionDep, contractor: ContractorDep) -> ReviewRead:
    review = await _own_review(session, review_id, contractor)
    return ReviewRead.model_validate(review)


@router.get("/{review_id}/rubric", response_model=RubricRead)
async def get_rubric(review_id: int, session: SessionDep, contractor: ContractorDep) -> RubricRead:
    review = await _own_review(session, review_id, contractor)
    return _rubric_read(review)


@router.put("/{review_id}/rubric", response_model=RubricRead)
async def put_rubric(review_id: int, payload: RubricSave, session: SessionDep, contractor: ContractorDep) -> RubricRead:
    review = await _own_review(session, review_id, contractor)
    try:
        review = await reviews.save_rubric(
            session, review, payload.model_dump(include=RUBRIC_FIELDS_ONLY), payload.version
        )
    except DOMAIN_ERRORS as exc:
        await session.rollback()
        raise to_http(exc) from exc
    return _rubric_read(review)


@router.get("/{review_id}/pages/{page_number}/rubric", response_model=RubricRead)
async def get_page_rubric(
    review_id: int, page_number: int, session: SessionDep, contractor: ContractorDep
) -> RubricRead:
    review = await _own_review(session, review_id, contractor)
    try:
        data = await reviews.load_page_rubric(session, review, page_number)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return RubricRead(**data)


@router.put("/{review_id}/pages/{page_number}/rubric", response_model=RubricRead)
async def put_page_rubric(
    review_id: int, page_number: int, payload: RubricSave, session: SessionDep, contractor: ContractorDep
) -> RubricRead:
    review = await _own_review(session, review_id, contractor)
    try:
        row = await reviews.save_page_rubric(
            session, review, page_number, payload.model_dump(include=RUBRIC_FIELDS_ONLY), payload.version
        )
    except DOMAIN_ERRORS as exc:
        await session.rollback()
        raise to_http(exc) from exc
    return _rubric_read(row, page_number)


@router.get("/{review_id}/notes", response_model=list[PageNoteRead])
async def list_notes(review_id: int, session: SessionDep, contractor: ContractorDep) -> list[PageNoteRead]:
    review = await _own_review(session, review_id, contractor)
    return [PageNoteRead.model_validate(n) for n in await reviews.list_page_notes(session, review.id)]


@router.put("/{review_id}/pages/{page_number}/note")
async def put_page_note(
    review_id: int, page_number: int, payload: PageNoteSave, session: SessionDep, contractor: ContractorDep
):
    review = await _own_review(session, review_id, contractor)
    try:
        note = await reviews.save_page_note(session, review, page_number, payload.note_content)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    if note is None:
        return {"page_number": page_number, "deleted": True}
    return PageNoteRead.model_validate(note).model_dump(mode="json")


@router.post("/{review_id}/submit")
async def submit_review(review_id: int, payload: ReviewSubmit, session: SessionDep, contractor: ContractorDep):
    await _own_review(session, review_id, contractor)
    try:
        review, script = await submit_script_review(
            session,
            review_id,
            recommendation=payload.recommendation,
            overall_notes=payload.overall_notes,
            judge_id=contractor.id,
        )
    except DOMAIN_ERRORS as exc:
        await session.rollback()
        logger.info(f"[reviews] submit of review {review_id} refused: {exc}")
        raise to_http(exc) from exc

    if await site_settings.is_enabled(session, "notify_review_submitted"):
        await notify_review_submitted(script.id, script.title, contractor.name)
    return {
        "review": ReviewRead.model_validate(review).model_dump(mode="json"),
        "script": ScriptRead.model_validate(script).model_dump(mode="json"),
    }


@admin_router.get("/by-script/{script_id}")
async def review_for_script(script_id: int, session: SessionDep, _: AdminDep):
    review = await reviews.find_script_review(session, script_id)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No review found for this script")
    return await reviews.review_bundle(session, review.id)


@admin_router.get("/{review_id}")
async def view_review(review_id: int, session: SessionDep, _: AdminDep):
    try:
        return await reviews.review_bundle(session, review_id)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc


@admin_router.get("/{review_id}/export")
async def export_review(review_id: int, session: SessionDep, _: AdminDep):
    try:
        bundle = await reviews.review_bundle(session, review_id)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    settings = get_settings()
    pdf = await run_in_threadpool(
        render_rubric_pdf,
        bundle,
        company_name=settings.company_name,
        header_logo=settings.pdf_header_logo,
        footer_logo=settings.pdf_footer_logo,
    )
    return Response(
        content=pdf.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{pdf.filename}"',
            "X-Page-Count": str(pdf.page_count),
        },
    )
