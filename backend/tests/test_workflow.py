"""
Tests for the script status state machine and review submission.
"""
import pytest
from sqlalchemy import func, select

from conftest import create_contractor
from scriptdesk.models import (
    ActivityLog,
    ContractorStatus,
    ReviewStatus,
    Script,
    ScriptPageNote,
    ScriptReview,
    ScriptStatus,
)
from scriptdesk.services import reviews
from scriptdesk.services.workflow import (
    InvalidTransition,
    MissingRubricFields,
    NotAssigned,
    assign_script_to_judge,
    check_transition,
    delete_script_admin,
    normalize_status,
    set_script_status,
    submit_script_review,
)

ALL_STATUSES = {s.value for s in ScriptStatus}


async def make_script(session, tier_id: str = "tier1", status: str = "pending") -> Script:
    script = Script(
        title="Harbor Lights",
        author_name="Sam Writer",
        author_email="sam@example.com",
        tier_id=tier_id,
        tier_name="Essential Review",
        amount=50000,
        payment_status="paid",
        status=status,
    )
    session.add(script)
    await session.commit()
    await session.refresh(script)
    return script


def assert_invariant(script: Script):
    assert script.status in ALL_STATUSES
    if script.status == ScriptStatus.assigned.value:
        assert script.assigned_judge_id is not None


COMPLETE_RUBRIC = {
    "title_response": "The title fits the story.",
    "plot_rating": 4,
    "plot_notes": "Tight second act.",
    "characters_rating": 3,
    "dialogue_notes": "Occasionally on the nose.",
}


class TestTransitions:
    def test_assigned_requires_judge(self):
        with pytest.raises(InvalidTransition):
            check_transition("pending", ScriptStatus.assigned, None)

    def test_pending_cannot_jump_to_reviewed(self):
        with pytest.raises(InvalidTransition):
            check_transition("pending", ScriptStatus.reviewed, 1)

    def test_legacy_statuses_fold_into_completed(self):
        assert normalize_status("approved") == ScriptStatus.completed
        assert normalize_status("declined") == ScriptStatus.completed

    def test_unknown_status(self):
        with pytest.raises(InvalidTransition):
            normalize_status("archived")


class TestAssignment:
    async def test_assign_and_unassign(self, session):
        judge = await create_contractor(session)
        script = await make_script(session)

        script = await assign_script_to_judge(session, script.id, judge.id, actor="admin")
        assert script.status == "assigned"
        assert script.assigned_judge_id == judge.id
        assert_invariant(script)
        await session.refresh(judge)
        assert judge.current_workload == 1

        script = await assign_script_to_judge(session, script.id, None, actor="admin")
        assert script.status == "pending"
        assert script.assigned_judge_id is None
        assert_invariant(script)
        await session.refresh(judge)
        assert judge.current_workload == 0

        actions = (await session.execute(select(ActivityLog.action).order_by(ActivityLog.id))).scalars().all()
        assert actions == ["script_assigned", "script_unassigned"]

    async def test_pending_contractor_cannot_be_assigned(self, session):
        judge = await create_contractor(session, status=ContractorStatus.pending)
        script = await make_script(session)
        with pytest.raises(InvalidTransition):
            await assign_script_to_judge(session, script.id, judge.id)
        await session.refresh(script)
        assert script.status == "pending"
        assert script.assigned_judge_id is None

    async def test_reviewed_script_cannot_be_reassigned(self, session):
        judge = await create_contractor(session)
        script = await make_script(session, status="reviewed")
        with pytest.raises(InvalidTransition):
            await assign_script_to_judge(session, script.id, judge.id)


class TestSubmission:
    async def _assigned_review(self, session):
        judge = await create_contractor(session)
        script = await make_script(session)
        await assign_script_to_judge(session, script.id, judge.id)
        review, script = await reviews.open_review(session, script.id, judge.id)
        return judge, script, review

    @pytest.mark.parametrize("dropped", ["title_response", "plot_rating", "characters_rating"])
    async def test_missing_required_field_leaves_state(self, session, dropped):
        judge, script, review = await self._assigned_review(session)
        values = {**COMPLETE_RUBRIC, dropped: None}
        await reviews.save_rubric(session, review, values)

        with pytest.raises(MissingRubricFields) as exc:
            await submit_script_review(session, review.id, recommendation="approved", judge_id=judge.id)
        assert str(exc.value) == "Please complete all required fields"
        assert exc.value.fields == [dropped]

        await session.refresh(script)
        await session.refresh(review)
        assert script.status == "assigned"
        assert script.reviewed_at is None
        assert review.status == ReviewStatus.in_progress.value
        assert review.submitted_at is None

    async def test_submit_completes_review_and_script(self, session):
        judge, script, review = await self._assigned_review(session)
        await reviews.save_rubric(session, review, COMPLETE_RUBRIC)

        review, script = await submit_script_review(
            session, review.id, recommendation="approved", overall_notes="Promising.", judge_id=judge.id
        )
        assert review.status == "completed"
        assert review.recommendation == "approved"
        assert review.overall_notes == "Promising."
        assert review.feedback == "Plot: Tight second act.\n\nDialogue: Occasionally on the nose."
        assert review.submitted_at is not None
        assert script.status == "reviewed"
        assert script.reviewed_at is not None
        assert_invariant(script)

        await session.refresh(judge)
        assert judge.total_scripts_reviewed == 1
        assert judge.current_workload == 0

    async def test_other_contractor_cannot_submit(self, session):
        judge, script, review = await self._assigned_review(session)
        other = await create_contractor(session, email="other@example.com", name="Other")
        await reviews.save_rubric(session, review, COMPLETE_RUBRIC)
        with pytest.raises(NotAssigned):
            await submit_script_review(session, review.id, judge_id=other.id)

    async def test_admin_status_after_review(self, session):
        judge, script, review = await self._assigned_review(session)
        await reviews.save_rubric(session, review, COMPLETE_RUBRIC)
        await submit_script_review(session, review.id, judge_id=judge.id)

        script = await set_script_status(session, script.id, ScriptStatus.completed, actor="admin")
        assert script.status == "completed"
        script = await set_script_status(session, script.id, ScriptStatus.incomplete, actor="admin")
        assert script.status == "incomplete"

    async def test_admin_cannot_set_other_statuses(self, session):
        script = await make_script(session)
        with pytest.raises(InvalidTransition):
            await set_script_status(session, script.id, ScriptStatus.reviewed)
        with pytest.raises(InvalidTransition):
            await set_script_status(session, script.id, ScriptStatus.completed)


class TestDelete:
    async def test_delete_removes_reviews_and_notes(self, session):
        judge = await create_contractor(session)
        script = await make_script(session)
        await assign_script_to_judge(session, script.id, judge.id)
        review, _ = await reviews.open_review(session, script.id, judge.id)
        await reviews.save_page_note(session, review, 3, "Cut this scene.")

        result = await delete_script_admin(session, script.id, actor="admin")
        assert result["reviews_deleted"] == 1

        assert await session.scalar(select(func.count(Script.id))) == 0
        assert await session.scalar(select(func.count(ScriptReview.id))) == 0
        assert await session.scalar(select(func.count(ScriptPageNote.id))) == 0
