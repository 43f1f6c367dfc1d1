"""
Stripe Checkout client (REST over httpx).

create_checkout_session() returns the hosted checkout URL the author is
redirected to; fetch_session_status() is used when the author comes back
from checkout.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from scriptdesk.settings import get_settings

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    pass


def _client() -> httpx.AsyncClient:
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise PaymentError("STRIPE_SECRET_KEY missing")
    return httpx.AsyncClient(
        base_url=settings.stripe_api_url,
        headers={"Authorization": f"Bearer {settings.stripe_secret_key}"},
        timeout=15.0,
    )


def build_checkout_form(payload: dict[str, Any], script_id: int) -> dict[str, str]:
    """Flatten the checkout request into Stripe's bracketed form encoding."""
    base = get_settings().public_base_url.rstrip("/")
    metadata = {
        "script_id": str(script_id),
        "title": payload["title"],
        "authorName": payload["authorName"],
        "authorEmail": payload["authorEmail"],
        "authorPhone": payload.get("authorPhone") or "",
        "originalAmount": str(payload.get("originalAmount") or payload["amount"]),
        "discountCode": payload.get("discountCode") or "",
        "discountPercentage": str(payload.get("discountPercentage") or ""),
        "tierName": payload["tierName"],
        "tierId": payload["tierId"],
        "tierDescription": (payload.get("tierDescription") or "")[:450],
    }
    form = {
        "mode": "payment",
        "payment_method_types[0]": "card",
        "line_items[0][quantity]": "1",
        "line_items[0][price_data][currency]": "usd",
        "line_items[0][price_data][unit_amount]": str(payload["amount"]),
        "line_items[0][price_data][product_data][name]": f"{payload['tierName']} - Script Review Service",
        "line_items[0][price_data][product_data][description]": (
            f"{payload.get('tierDescription') or ''} | Script: {payload['title']}"
        )[:500],
        "success_url": f"{base}/script-portal?success=true&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base}/script-portal?canceled=true",
        "client_reference_id": str(script_id),
        "customer_email": payload["authorEmail"],
    }
    for key, value in metadata.items():
        form[f"metadata[{key}]"] = value
    return form


async def create_checkout_session(payload: dict[str, Any], script_id: int) -> dict[str, str]:
    """Create a checkout session; returns {"id": ..., "url": ...}."""
    form = build_checkout_form(payload, script_id)
    logger.info(f"[payments] checkout for script {script_id}: {payload['amount']} cents ({payload['tierId']})")
    try:
        async with _client() as client:
            resp = await client.post("/checkout/sessions", data=form)
    except httpx.HTTPError as exc:
        logger.error(f"[payments] Stripe request failed: {exc}")
        raise PaymentError("Payment provider unavailable") from exc
    if resp.status_code >= 400:
        logger.error(f"[payments] Stripe error {resp.status_code}: {resp.text[:300]}")
        raise PaymentError(f"Stripe error: {resp.status_code}")
    data = resp.json()
    if not data.get("url"):
        raise PaymentError("Stripe returned no checkout URL")
    return {"id": data["id"], "url": data["url"]}


async def fetch_session_status(session_id: str) -> str:
    """Stripe payment_status of a checkout session ("paid", "unpaid", ...)."""
    try:
        async with _client() as client:
            resp = await client.get(f"/checkout/sessions/{session_id}")
    except httpx.HTTPError as exc:
        logger.error(f"[payments] Stripe request failed: {exc}")
        raise PaymentError("Payment provider unavailable") from exc
    if resp.status_code == 404:
        raise PaymentError("Checkout session not found")
    if resp.status_code >= 400:
        raise PaymentError(f"Stripe error: {resp.status_code}")
    return resp.json().get("payment_status") or "unpaid"
