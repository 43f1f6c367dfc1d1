"""
Review workspace: lazily created review rows, rubric saves, page notes and
per-page rubrics, and the read-only bundle used by the admin viewer and the
PDF export.
"""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import (
    Contractor,
    ReviewStatus,
    Script,
    ScriptPageNote,
    ScriptPageRubric,
    ScriptReview,
)
from scriptdesk.rubric import RUBRIC_FIELDS, empty_rubric, extract_rubric, sections
from scriptdesk.services.pricing import GRANULARITY_PER_PAGE, tier_granularity
from scriptdesk.services.workflow import (
    NotAssigned,
    NotFound,
    ReviewConflict,
    RubricNotAvailable,
    WorkflowError,
)

logger = logging.getLogger(__name__)


async def _find_review(session: AsyncSession, script_id: int, judge_id: int) -> ScriptReview | None:
    res = await session.execute(
        select(ScriptReview).where(ScriptReview.script_id == script_id, ScriptReview.judge_id == judge_id)
    )
    return res.scalars().first()


async def open_review(session: AsyncSession, script_id: int, judge_id: int) -> tuple[ScriptReview, Script]:
    """Return the contractor's review for a script, creating it on first open."""
    script = await session.get(Script, script_id)
    if not script:
        raise NotFound("Script not found")
    if script.assigned_judge_id != judge_id:
        raise NotAssigned("Script is not assigned to this contractor")

    review = await _find_review(session, script_id, judge_id)
    if review:
        return review, script

    review = ScriptReview(script_id=script_id, judge_id=judge_id, status=ReviewStatus.in_progress.value, version=1)
    session.add(review)
    try:
        await session.commit()
    except IntegrityError:
        # opened concurrently from another tab
        await session.rollback()
        review = await _find_review(session, script_id, judge_id)
        if not review:
            raise
        script = await session.get(Script, script_id)
        return review, script
    await session.refresh(review)
    logger.info(f"[reviews] created review {review.id} for script {script_id} judge {judge_id}")
    return review, script


async def get_review(session: AsyncSession, review_id: int, judge_id: int | None = None) -> ScriptReview:
    review = await session.get(ScriptReview, review_id)
    if not review:
        raise NotFound("Review not found")
    if judge_id is not None and review.judge_id != judge_id:
        raise NotAssigned("This review belongs to another contractor")
    return review


def _apply(target: Any, values: dict[str, Any], expected_version: int | None) -> None:
    if expected_version is not None and expected_version != target.version:
        raise ReviewConflict(f"Rubric changed since version {expected_version} (now {target.version})")
    for field in RUBRIC_FIELDS:
        setattr(target, field, values.get(field))
    target.version = (target.version or 0) + 1


async def save_rubric(
    session: AsyncSession,
    review: ScriptReview,
    values: dict[str, Any],
    expected_version: int | None = None,
) -> ScriptReview:
    """Overwrite the full rubric record; last write wins unless a version is given."""
    _apply(review, values, expected_version)
    await session.commit()
    await session.refresh(review)
    return review


async def _require_per_page(session: AsyncSession, review: ScriptReview) -> None:
    script = await session.get(Script, review.script_id)
    if not script or tier_granularity(script.tier_id) != GRANULARITY_PER_PAGE:
        raise RubricNotAvailable("Per-page rubrics are only available for the per-page review tier")


async def _find_page_rubric(session: AsyncSession, review_id: int, page_number: int) -> ScriptPageRubric | None:
    res = await session.execute(
        select(ScriptPageRubric).where(
            ScriptPageRubric.script_review_id == review_id,
            ScriptPageRubric.page_number == page_number,
        )
    )
    return res.scalars().first()


def _check_page(page_number: int) -> None:
    if page_number < 1:
        raise WorkflowError("Page numbers start at 1")


async def load_page_rubric(session: AsyncSession, review: ScriptReview, page_number: int) -> dict[str, Any]:
    """Stored values for a page, or empty defaults when the page has none yet."""
    _check_page(page_number)
    await _require_per_page(session, review)
    row = await _find_page_rubric(session, review.id, page_number)
    if not row:
        return {**empty_rubric(), "page_number": page_number, "version": 0}
    return {**extract_rubric(row), "page_number": page_number, "version": row.version}


async def save_page_rubric(
    session: AsyncSession,
    review: ScriptReview,
    page_number: int,
    values: dict[str, Any],
    expected_version: int | None = None,
) -> ScriptPageRubric:
    _check_page(page_number)
    await _require_per_page(session, review)
    row = await _find_page_rubric(session, review.id, page_number)
    if row is None:
        if expected_version not in (None, 0):
            raise ReviewConflict("Page rubric does not exist yet")
        row = ScriptPageRubric(script_review_id=review.id, page_number=page_number, version=0)
        session.add(row)
        expected_version = None
    _apply(row, values, expected_version)
    await session.commit()
    await session.refresh(row)
    return row


async def _find_page_note(session: AsyncSession, review_id: int, page_number: int) -> ScriptPageNote | None:
    res = await session.execute(
        select(ScriptPageNote).where(
            ScriptPageNote.script_review_id == review_id,
            ScriptPageNote.page_number == page_number,
        )
    )
    return res.scalars().first()


async def save_page_note(
    session: AsyncSession,
    review: ScriptReview,
    page_number: int,
    content: str,
) -> ScriptPageNote | None:
    """Upsert the note for one page; blank content removes it."""
    _check_page(page_number)
    note = await _find_page_note(session, review.id, page_number)
    if not (content or "").strip():
        if note:
            await session.delete(note)
            await session.commit()
        return None
    if note:
        note.note_content = content
    else:
        note = ScriptPageNote(script_review_id=review.id, page_number=page_number, note_content=content)
        session.add(note)
    await session.commit()
    await session.refresh(note)
    return note


async def list_page_notes(session: AsyncSession, review_id: int) -> list[ScriptPageNote]:
    res = await session.execute(
        select(ScriptPageNote)
        .where(ScriptPageNote.script_review_id == review_id)
        .order_by(ScriptPageNote.page_number)
    )
    return list(res.scalars().all())


async def list_page_rubrics(session: AsyncSession, review_id: int) -> list[ScriptPageRubric]:
    res = await session.execute(
        select(ScriptPageRubric)
        .where(ScriptPageRubric.script_review_id == review_id)
        .order_by(ScriptPageRubric.page_number)
    )
    return list(res.scalars().all())


def _iso(value) -> str | None:
    return value.isoformat() if value else None


async def review_bundle(session: AsyncSession, review_id: int) -> dict[str, Any]:
    """Everything the admin viewer and the PDF export render for one review."""
    review = await get_review(session, review_id)
    script = await session.get(Script, review.script_id)
    if not script:
        raise NotFound("Script not found")
    contractor = await session.get(Contractor, review.judge_id) if review.judge_id else None
    notes = await list_page_notes(session, review.id)
    page_rubrics = await list_page_rubrics(session, review.id)
    values = extract_rubric(review)

    return {
        "review_id": review.id,
        "status": review.status,
        "recommendation": review.recommendation,
        "overall_notes": review.overall_notes,
        "feedback": review.feedback,
        "created_at": _iso(review.created_at),
        "submitted_at": _iso(review.submitted_at),
        "granularity": tier_granularity(script.tier_id),
        "script": {
            "id": script.id,
            "title": script.title,
            "author_name": script.author_name,
            "author_email": script.author_email,
            "tier_name": script.tier_name,
            "amount": script.amount,
            "status": script.status,
            "reviewed_at": _iso(script.reviewed_at),
        },
        "contractor": {"id": contractor.id, "name": contractor.name} if contractor else None,
        "rubric": values,
        "sections": sections(values),
        "page_notes": [{"page_number": n.page_number, "note": n.note_content} for n in notes],
        "page_rubrics": [
            {"page_number": r.page_number, "sections": sections(extract_rubric(r))} for r in page_rubrics
        ],
    }


async def find_script_review(session: AsyncSession, script_id: int) -> ScriptReview | None:
    """Latest completed review for a script, falling back to any review."""
    res = await session.execute(
        select(ScriptReview)
        .where(ScriptReview.script_id == script_id)
        .order_by(
            (ScriptReview.status == ReviewStatus.completed.value).desc(),
            ScriptReview.updated_at.desc(),
        )
    )
    return res.scalars().first()
