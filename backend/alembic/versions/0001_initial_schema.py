"""create scripts, judges, reviews, page notes/rubrics, contacts, settings, activity

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _rubric_columns() -> list[sa.Column]:
    cols = [sa.Column("title_response", sa.Text(), nullable=True)]
    for key in (
        "plot",
        "characters",
        "concept_originality",
        "structure",
        "dialogue",
        "format_pacing",
        "theme",
        "catharsis",
        "production_budget",
    ):
        cols.append(sa.Column(f"{key}_rating", sa.SmallInteger(), nullable=True))
        cols.append(sa.Column(f"{key}_notes", sa.Text(), nullable=True))
    return cols


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "judges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("specialization", sa.String(length=255), nullable=True),
        sa.Column("availability", sa.String(length=64), nullable=True),
        sa.Column("current_workload", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_scripts_reviewed", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("email", name="uq_judges_email"),
    )

    op.create_table(
        "scripts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("author_name", sa.String(length=255), nullable=False),
        sa.Column("author_email", sa.String(length=255), nullable=False),
        sa.Column("author_phone", sa.String(length=64), nullable=True),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(length=512), nullable=True),
        sa.Column("storage_key", sa.String(length=512), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("original_amount", sa.Integer(), nullable=True),
        sa.Column("discount_code", sa.String(length=64), nullable=True),
        sa.Column("discount_percentage", sa.Integer(), nullable=True),
        sa.Column("tier_id", sa.String(length=32), nullable=False),
        sa.Column("tier_name", sa.String(length=255), nullable=False),
        sa.Column("payment_status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("payment_session_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("assigned_judge_id", sa.Integer(), sa.ForeignKey("judges.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scripts_assigned_judge_id", "scripts", ["assigned_judge_id"])
    op.create_index("ix_scripts_payment_session_id", "scripts", ["payment_session_id"])

    op.create_table(
        "script_reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("script_id", sa.Integer(), sa.ForeignKey("scripts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("judge_id", sa.Integer(), sa.ForeignKey("judges.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="in_progress"),
        sa.Column("recommendation", sa.Text(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("overall_notes", sa.Text(), nullable=True),
        *_rubric_columns(),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("script_id", "judge_id", name="uq_script_reviews_script_judge"),
    )
    op.create_index("ix_script_reviews_script_id", "script_reviews", ["script_id"])
    op.create_index("ix_script_reviews_judge_id", "script_reviews", ["judge_id"])

    op.create_table(
        "script_page_notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "script_review_id", sa.Integer(), sa.ForeignKey("script_reviews.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("page_number", sa.Integer(), nullable=False),
        sa.Column("note_content", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("script_review_id", "page_number", name="uq_script_page_notes_review_page"),
    )
    op.create_index("ix_script_page_notes_script_review_id", "script_page_notes", ["script_review_id"])

    op.create_table(
        "script_page_rubrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "script_review_id", sa.Integer(), sa.ForeignKey("script_reviews.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("page_number", sa.Integer(), nullable=False),
        *_rubric_columns(),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("script_review_id", "page_number", name="uq_script_page_rubrics_review_page"),
    )
    op.create_index("ix_script_page_rubrics_script_review_id", "script_page_rubrics", ["script_review_id"])

    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("subject", sa.String(length=512), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="new"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "site_settings",
        sa.Column("setting_key", sa.String(length=128), primary_key=True),
        sa.Column("setting_value", sa.JSON(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("actor", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_activity_log_action", "activity_log", ["action"])


def downgrade() -> None:
    op.drop_index("ix_activity_log_action", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_table("site_settings")
    op.drop_table("contacts")
    op.drop_index("ix_script_page_rubrics_script_review_id", table_name="script_page_rubrics")
    op.drop_table("script_page_rubrics")
    op.drop_index("ix_script_page_notes_script_review_id", table_name="script_page_notes")
    op.drop_table("script_page_notes")
    op.drop_index("ix_script_reviews_judge_id", table_name="script_reviews")
    op.drop_index("ix_script_reviews_script_id", table_name="script_reviews")
    op.drop_table("script_reviews")
    op.drop_index("ix_scripts_payment_session_id", table_name="scripts")
    op.drop_index("ix_scripts_assigned_judge_id", table_name="scripts")
    op.drop_table("scripts")
    op.drop_table("judges")
