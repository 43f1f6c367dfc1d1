from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .http_errors import DOMAIN_ERRORS, to_http
from .schemas import PaymentConfirm, QuoteRead, QuoteRequest, ScriptRead, TierRead
from .services.intake import confirm_payment
from .services.pricing import get_tiers, quote

router = APIRouter(prefix="/api/pricing", tags=["pricing"])
payments_router = APIRouter(prefix="/api/payments", tags=["payments"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@router.get("/tiers", response_model=list[TierRead])
async def list_tiers(session: SessionDep) -> list[TierRead]:
    return [
        TierRead(
            id=t.id,
            name=t.name,
            price=t.price,
            amount=t.amount,
            description=t.description,
            features=list(t.features),
            granularity=t.granularity,
        )
        for t in await get_tiers(session)
    ]


@router.post("/quote", response_model=QuoteRead)
async def get_quote(payload: QuoteRequest, session: SessionDep) -> QuoteRead:
    try:
        return QuoteRead(**await quote(session, payload.tier_id, payload.discount_code))
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc


@payments_router.post("/confirm", response_model=ScriptRead)
async def confirm(payload: PaymentConfirm, session: SessionDep) -> ScriptRead:
    """Called when the author returns from checkout with `session_id`."""
    try:
        script = await confirm_payment(session, payload.session_id)
    except DOMAIN_ERRORS as exc:
        raise to_http(exc) from exc
    return ScriptRead.model_validate(script)
