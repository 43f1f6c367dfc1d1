"""
Notification service: Telegram alerts to the admin chat.

Env:
  TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID

Site settings `notify_new_submission` / `notify_review_submitted` /
`notify_new_contact` switch individual alerts off.
"""
from __future__ import annotations

import html
import logging

import httpx

logger = logging.getLogger(__name__)


def _get_config() -> tuple[str | None, str | None]:
    from scriptdesk.settings import get_settings
    s = get_settings()
    return s.telegram_bot_token, s.telegram_chat_id


async def _send_telegram(text: str) -> bool:
    token, chat_id = _get_config()
    if not token or not chat_id:
        logger.debug("[notify] Telegram not configured, skipping")
        return False
    url = f"https://api.telegram.org/bot{token}/sendMessage"
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            r = await client.post(url, json={
                "chat_id": chat_id,
                "text": text[:4000],
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            })
            if r.status_code == 200:
                return True
            logger.warning(f"[notify] Telegram API {r.status_code}: {r.text[:200]}")
    except httpx.HTTPError as e:
        logger.warning(f"[notify] Telegram send failed: {e}")
    return False


def _esc(value) -> str:
    return html.escape(str(value or ""))


async def notify_new_submission(script_id: int, title: str, author: str, tier_name: str, amount: int) -> bool:
    body = (
        f"📄 <b>New script submission</b>\n\n"
        f"#{script_id} {_esc(title)}\n"
        f"by {_esc(author)}\n"
        f"{_esc(tier_name)} (${amount / 100:.2f})"
    )
    return await _send_telegram(body)


async def notify_review_submitted(script_id: int, title: str, contractor: str | None) -> bool:
    body = (
        f"✅ <b>Review submitted</b>\n\n"
        f"#{script_id} {_esc(title)}\n"
        f"reviewer: {_esc(contractor or 'unknown')}"
    )
    return await _send_telegram(body)


async def notify_new_contact(name: str, email: str, subject: str | None) -> bool:
    body = f"✉️ <b>New contact message</b>\n\n{_esc(name)} &lt;{_esc(email)}&gt;\n{_esc(subject or '(no subject)')}"
    return await _send_telegram(body)
