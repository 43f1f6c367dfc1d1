"""
Script status workflow.

    pending -> assigned -> reviewed -> completed
                   \\________________-> incomplete

- assign_script_to_judge: pending/assigned/incomplete -> assigned (or back to pending)
- submit_script_review:   assigned/reviewed/incomplete -> reviewed
- set_script_status:      reviewed/completed/incomplete -> completed | incomplete (admin only)

A script is never `assigned` without `assigned_judge_id`. Review and script
rows are changed in a single commit.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import (
    LEGACY_SCRIPT_STATUSES,
    Contractor,
    ContractorStatus,
    ReviewStatus,
    Script,
    ScriptPageNote,
    ScriptPageRubric,
    ScriptReview,
    ScriptStatus,
)
from scriptdesk.rubric import compile_feedback, extract_rubric, missing_required
from scriptdesk.services.activity import log_activity

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    """Base class for workflow rule violations."""


class NotFound(WorkflowError, LookupError):
    pass


class InvalidTransition(WorkflowError):
    pass


class NotAssigned(WorkflowError):
    """The acting contractor does not own the script or review."""


class MissingRubricFields(WorkflowError):
    def __init__(self, fields: list[str]):
        super().__init__("Please complete all required fields")
        self.fields = fields


class ReviewConflict(WorkflowError):
    """The rubric was saved elsewhere since the client loaded it."""


class RubricNotAvailable(WorkflowError):
    pass


ALLOWED_TRANSITIONS: dict[ScriptStatus, set[ScriptStatus]] = {
    ScriptStatus.pending: {ScriptStatus.assigned},
    ScriptStatus.assigned: {ScriptStatus.pending, ScriptStatus.assigned, ScriptStatus.reviewed},
    ScriptStatus.reviewed: {ScriptStatus.reviewed, ScriptStatus.completed, ScriptStatus.incomplete},
    ScriptStatus.completed: {ScriptStatus.completed, ScriptStatus.incomplete},
    ScriptStatus.incomplete: {
        ScriptStatus.pending,
        ScriptStatus.assigned,
        ScriptStatus.reviewed,
        ScriptStatus.completed,
        ScriptStatus.incomplete,
    },
}

ADMIN_SETTABLE = {ScriptStatus.completed, ScriptStatus.incomplete}


def normalize_status(value: str | None) -> ScriptStatus:
    raw = LEGACY_SCRIPT_STATUSES.get(value or "", value or ScriptStatus.pending.value)
    try:
        return ScriptStatus(raw)
    except ValueError:
        raise InvalidTransition(f"Unknown script status: {value}") from None


def check_transition(current: str | None, target: ScriptStatus, judge_id: int | None) -> ScriptStatus:
    """Validate a status move, returning the normalized current status."""
    source = normalize_status(current)
    if target == ScriptStatus.assigned and judge_id is None:
        raise InvalidTransition("A script cannot be assigned without a contractor")
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransition(f"Cannot move script from {source.value} to {target.value}")
    return source


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _get_script(session: AsyncSession, script_id: int) -> Script:
    script = await session.get(Script, script_id)
    if not script:
        raise NotFound("Script not found")
    return script


async def _adjust_workload(session: AsyncSession, judge_id: int | None, delta: int) -> None:
    if judge_id is None:
        return
    judge = await session.get(Contractor, judge_id)
    if judge:
        judge.current_workload = max(0, (judge.current_workload or 0) + delta)


async def assign_script_to_judge(
    session: AsyncSession,
    script_id: int,
    judge_id: int | None,
    actor: str | None = None,
) -> Script:
    """Assign (or with judge_id=None, unassign) a script."""
    script = await _get_script(session, script_id)
    previous_judge = script.assigned_judge_id

    if judge_id is None:
        check_transition(script.status, ScriptStatus.pending, None)
        script.assigned_judge_id = None
        script.status = ScriptStatus.pending.value
        await _adjust_workload(session, previous_judge, -1)
        log_activity(session, "script_unassigned", "script", script.id, actor, {"previous_judge_id": previous_judge})
    else:
        judge = await session.get(Contractor, judge_id)
        if not judge:
            raise NotFound("Contractor not found")
        if judge.status != ContractorStatus.approved.value:
            raise InvalidTransition("Only approved contractors can be assigned scripts")
        check_transition(script.status, ScriptStatus.assigned, judge_id)
        if previous_judge != judge_id:
            await _adjust_workload(session, previous_judge, -1)
            await _adjust_workload(session, judge_id, +1)
        script.assigned_judge_id = judge_id
        script.status = ScriptStatus.assigned.value
        log_activity(
            session,
            "script_assigned",
            "script",
            script.id,
            actor,
            {"judge_id": judge_id, "judge_name": judge.name, "previous_judge_id": previous_judge},
        )

    await session.commit()
    await session.refresh(script)
    logger.info(f"[workflow] script {script.id} -> {script.status} (judge={script.assigned_judge_id})")
    return script


async def submit_script_review(
    session: AsyncSession,
    review_id: int,
    recommendation: str | None = None,
    feedback: str | None = None,
    overall_notes: str | None = None,
    judge_id: int | None = None,
) -> tuple[ScriptReview, Script]:
    """Complete a review and move its script to `reviewed`.

    When `feedback` is not given it is compiled from the rubric notes.
    `judge_id`, when given, must own the review.
    """
    review = await session.get(ScriptReview, review_id)
    if not review:
        raise NotFound("Review not found")
    if judge_id is not None and review.judge_id != judge_id:
        raise NotAssigned("This review belongs to another contractor")

    values = extract_rubric(review)
    missing = missing_required(values)
    if missing:
        logger.info(f"[workflow] review {review_id} rejected, missing {missing}")
        raise MissingRubricFields(missing)

    script = await _get_script(session, review.script_id)
    if script.assigned_judge_id is None or script.assigned_judge_id != review.judge_id:
        raise NotAssigned("Script is not assigned to this contractor")
    check_transition(script.status, ScriptStatus.reviewed, script.assigned_judge_id)

    first_submission = review.submitted_at is None
    now = _utcnow()
    review.status = ReviewStatus.completed.value
    review.recommendation = (recommendation or "").strip() or None
    review.overall_notes = overall_notes
    review.feedback = feedback if feedback is not None else compile_feedback(values)
    review.submitted_at = now
    script.status = ScriptStatus.reviewed.value
    script.reviewed_at = now

    if first_submission and review.judge_id is not None:
        judge = await session.get(Contractor, review.judge_id)
        if judge:
            judge.current_workload = max(0, (judge.current_workload or 0) - 1)
            judge.total_scripts_reviewed = (judge.total_scripts_reviewed or 0) + 1

    log_activity(
        session,
        "review_submitted",
        "script",
        script.id,
        f"judge:{review.judge_id}",
        {"review_id": review.id, "recommendation": review.recommendation},
    )
    await session.commit()
    await session.refresh(review)
    await session.refresh(script)
    logger.info(f"[workflow] review {review.id} submitted, script {script.id} reviewed")
    return review, script


async def set_script_status(
    session: AsyncSession,
    script_id: int,
    status: ScriptStatus,
    actor: str | None = None,
) -> Script:
    """Admin override to mark a reviewed script completed or incomplete."""
    if status not in ADMIN_SETTABLE:
        raise InvalidTransition("Only completed or incomplete can be set manually")
    script = await _get_script(session, script_id)
    source = check_transition(script.status, status, script.assigned_judge_id)
    script.status = status.value
    log_activity(session, "script_status_changed", "script", script.id, actor, {"from": source.value, "to": status.value})
    await session.commit()
    await session.refresh(script)
    return script


async def delete_script_admin(session: AsyncSession, script_id: int, actor: str | None = None) -> dict:
    """Hard-delete a script together with its reviews, page notes and page rubrics.

    Returns the storage key of the removed file so the caller can drop it.
    """
    script = await _get_script(session, script_id)
    res = await session.execute(select(ScriptReview.id).where(ScriptReview.script_id == script_id))
    review_ids = list(res.scalars().all())

    if review_ids:
        await session.execute(delete(ScriptPageNote).where(ScriptPageNote.script_review_id.in_(review_ids)))
        await session.execute(delete(ScriptPageRubric).where(ScriptPageRubric.script_review_id.in_(review_ids)))
        await session.execute(delete(ScriptReview).where(ScriptReview.id.in_(review_ids)))

    if normalize_status(script.status) == ScriptStatus.assigned:
        await _adjust_workload(session, script.assigned_judge_id, -1)

    storage_key = script.storage_key
    title = script.title
    await session.execute(delete(Script).where(Script.id == script_id))
    log_activity(session, "script_deleted", "script", script_id, actor, {"title": title, "reviews": len(review_ids)})
    await session.commit()
    logger.info(f"[workflow] script {script_id} deleted with {len(review_ids)} review(s)")
    return {"script_id": script_id, "reviews_deleted": len(review_ids), "storage_key": storage_key}
