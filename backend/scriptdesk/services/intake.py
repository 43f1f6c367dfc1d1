"""
Script intake: validate the submission form, store the file, price it and
either mark it paid (free / bypass tiers) or open a Stripe checkout.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import PaymentStatus, Script, ScriptStatus
from scriptdesk.services import site_settings, storage
from scriptdesk.services.activity import log_activity
from scriptdesk.services.notify import notify_new_submission
from scriptdesk.services.payments import PaymentError, create_checkout_session, fetch_session_status
from scriptdesk.services.pricing import get_tier, quote
from scriptdesk.services.workflow import NotFound
from scriptdesk.settings import get_settings

logger = logging.getLogger(__name__)

# checkout still open stays pending; anything unknown counts as failed
_PROVIDER_PAYMENT_STATUS = {
    "paid": PaymentStatus.paid,
    "unpaid": PaymentStatus.pending,
}


class IntakeError(ValueError):
    pass


async def submit_script(
    session: AsyncSession,
    *,
    title: str | None,
    author_name: str | None,
    author_email: str | None,
    tier_id: str | None,
    filename: str | None,
    content: bytes | None,
    author_phone: str | None = None,
    discount_code: str | None = None,
) -> tuple[Script, str | None]:
    """Create a `pending` script; returns it with the checkout URL (None when no payment is due)."""
    title = (title or "").strip()
    author_name = (author_name or "").strip()
    author_email = (author_email or "").strip()
    if not (title and author_name and author_email and tier_id and filename and content):
        raise IntakeError("Please fill in all required fields")

    storage.check_upload(filename, len(content))
    tier = await get_tier(session, tier_id)
    priced = await quote(session, tier.id, discount_code)

    key = storage.upload(storage.SCRIPTS_BUCKET, filename, content)
    payment_due = priced["amount"] > 0 and tier.id not in get_settings().bypass_tier_ids

    script = Script(
        title=title,
        author_name=author_name,
        author_email=author_email,
        author_phone=(author_phone or "").strip() or None,
        file_url=storage.public_url(storage.SCRIPTS_BUCKET, key),
        file_name=filename,
        storage_key=key,
        amount=priced["amount"],
        original_amount=priced["original_amount"],
        discount_code=priced["discount_code"],
        discount_percentage=priced["discount_percentage"],
        tier_id=tier.id,
        tier_name=tier.name,
        payment_status=PaymentStatus.pending.value if payment_due else PaymentStatus.paid.value,
        status=ScriptStatus.pending.value,
    )
    session.add(script)
    try:
        await session.flush()
        log_activity(session, "script_submitted", "script", script.id, author_email, {"tier_id": tier.id})
        await session.commit()
    except Exception:
        await session.rollback()
        storage.remove(storage.SCRIPTS_BUCKET, key)
        logger.exception(f"[intake] could not save script {title!r}")
        raise
    await session.refresh(script)
    logger.info(f"[intake] script {script.id} submitted ({tier.id}, {script.amount} cents)")

    checkout_url = None
    if payment_due:
        payload = {
            "title": title,
            "authorName": author_name,
            "authorEmail": author_email,
            "authorPhone": script.author_phone,
            "amount": script.amount,
            "originalAmount": script.original_amount,
            "discountCode": script.discount_code,
            "discountPercentage": script.discount_percentage,
            "tierName": tier.name,
            "tierId": tier.id,
            "tierDescription": tier.description,
        }
        try:
            checkout = await create_checkout_session(payload, script.id)
        except PaymentError:
            script.payment_status = PaymentStatus.failed.value
            await session.commit()
            raise
        script.payment_session_id = checkout["id"]
        await session.commit()
        await session.refresh(script)
        checkout_url = checkout["url"]

    if await site_settings.is_enabled(session, "notify_new_submission"):
        await notify_new_submission(script.id, script.title, script.author_name, script.tier_name, script.amount)
    return script, checkout_url


async def confirm_payment(session: AsyncSession, session_id: str) -> Script:
    res = await session.execute(select(Script).where(Script.payment_session_id == session_id))
    script = res.scalars().first()
    if not script:
        raise NotFound("No script for this checkout session")
    payment_status = await fetch_session_status(session_id)
    script.payment_status = _PROVIDER_PAYMENT_STATUS.get(payment_status, PaymentStatus.failed).value
    log_activity(session, "payment_confirmed", "script", script.id, None, {"payment_status": payment_status})
    await session.commit()
    await session.refresh(script)
    logger.info(f"[intake] script {script.id} payment {script.payment_status}")
    return script
