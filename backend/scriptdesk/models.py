from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


class ScriptStatus(str, Enum):
    pending = "pending"
    assigned = "assigned"
    reviewed = "reviewed"
    completed = "completed"
    incomplete = "incomplete"


# older rows carried the review recommendation as the script status
LEGACY_SCRIPT_STATUSES = {"approved": ScriptStatus.completed.value, "declined": ScriptStatus.completed.value}


class PaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"


class ContractorStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"


class ReviewStatus(str, Enum):
    in_progress = "in_progress"
    completed = "completed"


class ContactStatus(str, Enum):
    new = "new"
    read = "read"
    responded = "responded"


class RubricColumns:
    """The 19 rubric columns shared by whole-script and per-page rubrics."""

    title_response: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    plot_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    plot_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    characters_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    characters_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    concept_originality_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    concept_originality_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    structure_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    structure_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    dialogue_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    dialogue_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    format_pacing_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    format_pacing_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    theme_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    theme_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    catharsis_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    catharsis_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    production_budget_rating: Mapped[int | None] = mapped_column(sa.SmallInteger(), nullable=True)
    production_budget_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)


class Contractor(Base):
    __tablename__ = "judges"
    __table_args__ = (sa.UniqueConstraint("email", name="uq_judges_email"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=ContractorStatus.pending.value)
    specialization: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    availability: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    current_workload: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="0", default=0)
    total_scripts_reviewed: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="0", default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


class Script(Base):
    __tablename__ = "scripts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    author_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    author_email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    author_phone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    file_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    file_name: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    storage_key: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    amount: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="0", default=0)
    original_amount: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    discount_code: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    discount_percentage: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    tier_id: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    tier_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    payment_status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=PaymentStatus.pending.value)
    payment_session_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True, index=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=ScriptStatus.pending.value)
    assigned_judge_id: Mapped[int | None] = mapped_column(
        sa.ForeignKey("judges.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    assigned_judge: Mapped["Contractor | None"] = relationship()
    reviews: Mapped[list["ScriptReview"]] = relationship(
        back_populates="script", cascade="all, delete-orphan", passive_deletes=True
    )


class ScriptReview(RubricColumns, Base):
    __tablename__ = "script_reviews"
    __table_args__ = (sa.UniqueConstraint("script_id", "judge_id", name="uq_script_reviews_script_judge"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    script_id: Mapped[int] = mapped_column(sa.ForeignKey("scripts.id", ondelete="CASCADE"), nullable=False, index=True)
    judge_id: Mapped[int | None] = mapped_column(sa.ForeignKey("judges.id", ondelete="SET NULL"), nullable=True, index=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=ReviewStatus.in_progress.value)
    recommendation: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    feedback: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    overall_notes: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    version: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="1", default=1)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )
    submitted_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    script: Mapped["Script"] = relationship(back_populates="reviews")
    page_notes: Mapped[list["ScriptPageNote"]] = relationship(
        back_populates="review", cascade="all, delete-orphan", passive_deletes=True
    )
    page_rubrics: Mapped[list["ScriptPageRubric"]] = relationship(
        back_populates="review", cascade="all, delete-orphan", passive_deletes=True
    )


class ScriptPageNote(Base):
    __tablename__ = "script_page_notes"
    __table_args__ = (
        sa.UniqueConstraint("script_review_id", "page_number", name="uq_script_page_notes_review_page"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    script_review_id: Mapped[int] = mapped_column(
        sa.ForeignKey("script_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    page_number: Mapped[int] = mapped_column(sa.Integer(), nullable=False)
    note_content: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    review: Mapped["ScriptReview"] = relationship(back_populates="page_notes")


class ScriptPageRubric(RubricColumns, Base):
    __tablename__ = "script_page_rubrics"
    __table_args__ = (
        sa.UniqueConstraint("script_review_id", "page_number", name="uq_script_page_rubrics_review_page"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    script_review_id: Mapped[int] = mapped_column(
        sa.ForeignKey("script_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    page_number: Mapped[int] = mapped_column(sa.Integer(), nullable=False)
    version: Mapped[int] = mapped_column(sa.Integer(), nullable=False, server_default="1", default=1)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    review: Mapped["ScriptReview"] = relationship(back_populates="page_rubrics")


class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    subject: Mapped[str | None] = mapped_column(sa.String(512), nullable=True)
    message: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=ContactStatus.new.value)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )


class SiteSetting(Base):
    __tablename__ = "site_settings"

    setting_key: Mapped[str] = mapped_column(sa.String(128), primary_key=True)
    setting_value: Mapped[Any] = mapped_column(sa.JSON(), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    actor: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    details: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
