from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import LEGACY_SCRIPT_STATUSES, ContactStatus, ContractorStatus, ScriptStatus
from .rubric import CRITERIA_BY_KEY, RATING_FIELDS


# Scripts
class ScriptRead(BaseModel):
    id: int
    title: str
    author_name: str
    author_email: str
    author_phone: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    amount: int
    original_amount: int | None = None
    discount_code: str | None = None
    discount_percentage: int | None = None
    tier_id: str
    tier_name: str
    payment_status: str
    status: ScriptStatus
    assigned_judge_id: int | None = None
    created_at: datetime | None = None
    reviewed_at: datetime | None = None

    class Config:
        from_attributes = True

    @field_validator("status", mode="before")
    @classmethod
    def fold_legacy_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return LEGACY_SCRIPT_STATUSES.get(value, value)
        return value


class ScriptSubmitResult(BaseModel):
    script: ScriptRead
    checkout_url: str | None = None


class ScriptAssign(BaseModel):
    judge_id: int | None = None


class ScriptStatusUpdate(BaseModel):
    status: ScriptStatus


# Contractors
class ContractorSignup(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=6, max_length=72)
    specialization: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("invalid email")
        return value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > 72:
            raise ValueError("password is longer than 72 bytes")
        return value


class ContractorRead(BaseModel):
    id: int
    name: str
    email: str
    status: ContractorStatus
    specialization: str | None = None
    availability: str | None = None
    current_workload: int = 0
    total_scripts_reviewed: int = 0
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ContractorUpdate(BaseModel):
    name: str | None = None
    specialization: str | None = None
    availability: str | None = None


# Auth
class AdminLogin(BaseModel):
    email: str | None = None
    password: str


class ContractorLogin(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    role: str
    expires_at: str
    contractor: ContractorRead | None = None


# Rubric
class RubricValues(BaseModel):
    """Full rubric record; ratings are range-checked per criterion."""

    title_response: str | None = None
    plot_rating: int | None = None
    plot_notes: str | None = None
    characters_rating: int | None = None
    characters_notes: str | None = None
    concept_originality_rating: int | None = None
    concept_originality_notes: str | None = None
    structure_rating: int | None = None
    structure_notes: str | None = None
    dialogue_rating: int | None = None
    dialogue_notes: str | None = None
    format_pacing_rating: int | None = None
    format_pacing_notes: str | None = None
    theme_rating: int | None = None
    theme_notes: str | None = None
    catharsis_rating: int | None = None
    catharsis_notes: str | None = None
    production_budget_rating: int | None = None
    production_budget_notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def coerce_blank(cls, data: Any) -> Any:
        # form inputs send "" for untouched fields
        if isinstance(data, dict):
            return {k: (None if isinstance(v, str) and v.strip() == "" else v) for k, v in data.items()}
        return data

    @model_validator(mode="after")
    def check_ratings(self) -> "RubricValues":
        for field in RATING_FIELDS:
            value = getattr(self, field)
            if value is None:
                continue
            criterion = CRITERIA_BY_KEY[field.removesuffix("_rating")]
            if not 1 <= value <= criterion.max_rating:
                raise ValueError(f"{field} must be between 1 and {criterion.max_rating}")
        return self


class RubricSave(RubricValues):
    version: int | None = None


class RubricRead(RubricValues):
    version: int = 1
    page_number: int | None = None


class ReviewOpen(BaseModel):
    script_id: int


class ReviewRead(RubricValues):
    id: int
    script_id: int
    judge_id: int | None = None
    status: str
    recommendation: str | None = None
    feedback: str | None = None
    overall_notes: str | None = None
    version: int = 1
    created_at: datetime | None = None
    submitted_at: datetime | None = None

    class Config:
        from_attributes = True


class WorkspaceRead(BaseModel):
    review: ReviewRead
    script: ScriptRead
    granularity: str
    viewer_mode: str
    file_url: str | None = None
    page_notes: dict[int, str] = {}


class ReviewSubmit(BaseModel):
    recommendation: str | None = None
    overall_notes: str | None = None


class PageNoteSave(BaseModel):
    note_content: str = ""


class PageNoteRead(BaseModel):
    id: int
    script_review_id: int
    page_number: int
    note_content: str
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# Pricing
class TierRead(BaseModel):
    id: str
    name: str
    price: int
    amount: int
    description: str
    features: list[str] = []
    granularity: str


class QuoteRequest(BaseModel):
    tier_id: str
    discount_code: str | None = None


class QuoteRead(BaseModel):
    tier_id: str
    original_amount: int
    amount: int
    discount_code: str | None = None
    discount_percentage: int | None = None


class PaymentConfirm(BaseModel):
    session_id: str


# Contacts
class ContactCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str | None = None
    subject: str | None = None
    message: str = Field(min_length=1)


class ContactRead(BaseModel):
    id: int | str
    name: str
    email: str
    phone: str | None = None
    subject: str | None = None
    message: str
    status: ContactStatus
    created_at: datetime | None = None
    source: str = "db"

    class Config:
        from_attributes = True


class ContactStatusUpdate(BaseModel):
    status: ContactStatus


# Settings
class SettingWrite(BaseModel):
    value: Any = None


class ActivityRead(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: int | None = None
    actor: str | None = None
    details: dict | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True
