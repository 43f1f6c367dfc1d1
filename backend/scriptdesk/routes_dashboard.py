"""
Dashboard API routes for the admin overview.
"""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import (
    LEGACY_SCRIPT_STATUSES,
    Contact,
    Contractor,
    PaymentStatus,
    ReviewStatus,
    Script,
    ScriptReview,
)
from .routes_auth import AdminDep

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _day(value) -> str | None:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


@router.get("/stats")
async def get_dashboard_stats(
    _: AdminDep,
    session: AsyncSession = Depends(get_session),
    days: int = Query(30, ge=1, le=365),
):
    """Pipeline, revenue, contractor and contact counts."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)

    # Scripts by status, legacy approved/declined counted as completed
    result = await session.execute(select(Script.status, func.count(Script.id)).group_by(Script.status))
    scripts_by_status: dict[str, int] = {}
    for raw, count in result.all():
        key = LEGACY_SCRIPT_STATUSES.get(raw, raw)
        scripts_by_status[key] = scripts_by_status.get(key, 0) + count

    result = await session.execute(
        select(Script.payment_status, func.count(Script.id)).group_by(Script.payment_status)
    )
    scripts_by_payment = dict(result.all())

    result = await session.execute(select(Script.tier_id, func.count(Script.id)).group_by(Script.tier_id))
    scripts_by_tier = dict(result.all())

    revenue = await session.scalar(
        select(func.coalesce(func.sum(Script.amount), 0)).where(Script.payment_status == PaymentStatus.paid.value)
    )

    result = await session.execute(select(Contractor.status, func.count(Contractor.id)).group_by(Contractor.status))
    contractors_by_status = dict(result.all())

    result = await session.execute(select(Contact.status, func.count(Contact.id)).group_by(Contact.status))
    contacts_by_status = dict(result.all())

    # Reviews completed per day
    day = func.date(ScriptReview.submitted_at)
    result = await session.execute(
        select(day.label("day"), func.count(ScriptReview.id).label("count"))
        .where(
            ScriptReview.status == ReviewStatus.completed.value,
            ScriptReview.submitted_at >= cutoff,
        )
        .group_by(day)
        .order_by(day)
    )
    reviews_per_day = [{"date": _day(row.day), "count": row.count} for row in result.all()]

    return {
        "period_days": days,
        "scripts": {
            "total": sum(scripts_by_status.values()),
            "by_status": scripts_by_status,
            "by_payment_status": scripts_by_payment,
            "by_tier": scripts_by_tier,
        },
        "revenue": {
            "paid_amount": int(revenue or 0),
            "paid_amount_usd": round((revenue or 0) / 100, 2),
        },
        "contractors": {
            "total": sum(contractors_by_status.values()),
            "by_status": contractors_by_status,
        },
        "contacts": {
            "total": sum(contacts_by_status.values()),
            "by_status": contacts_by_status,
        },
        "reviews": {
            "completed_per_day": reviews_per_day,
        },
    }
