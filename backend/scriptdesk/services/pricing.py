"""
Pricing tiers and discount codes for script submissions.

Amounts are handled in minor units (cents). Tier prices may be overridden
from site settings (`tier_1_price` .. `tier_3_price`, in dollars).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import SiteSetting

logger = logging.getLogger(__name__)

GRANULARITY_SCRIPT = "whole_script"
GRANULARITY_PER_PAGE = "per_page"


class InvalidDiscountCode(ValueError):
    pass


class UnknownTier(LookupError):
    pass


@dataclass(frozen=True)
class Tier:
    id: str
    name: str
    price: int  # dollars
    description: str
    features: tuple[str, ...] = field(default_factory=tuple)
    setting_key: str | None = None
    granularity: str = GRANULARITY_SCRIPT

    @property
    def amount(self) -> int:
        return self.price * 100


DEFAULT_TIERS: tuple[Tier, ...] = (
    Tier(
        id="free",
        name="Free Upload",
        price=0,
        description="Upload your script for basic processing and storage in our system",
        features=("Script upload and storage", "Basic file processing", "Entry into review queue"),
    ),
    Tier(
        id="tier1",
        name="Essential Review",
        price=500,
        description="Rubric and scoring with 4-5 pages of notes and detailed feedback",
        features=("Updated rubric scoring system", "4-5 pages of detailed notes", "Comprehensive feedback"),
        setting_key="tier_1_price",
    ),
    Tier(
        id="tier2",
        name="Comprehensive Analysis",
        price=750,
        description=(
            "Rubric score with 9-10 pages of notes, detailed analysis on character, structure, "
            "story, voice, and form, plus comments on how to strengthen the script"
        ),
        features=("Everything from Essential Review", "9-10 pages of detailed notes", "Character analysis"),
        setting_key="tier_2_price",
    ),
    Tier(
        id="tier3",
        name="Premium Script Notes",
        price=1000,
        description="Page-by-page rubric scoring with notes on every page of the script",
        features=("Everything from Comprehensive Analysis", "Per-page rubric", "Per-page notes"),
        setting_key="tier_3_price",
        granularity=GRANULARITY_PER_PAGE,
    ),
)

TIERS_BY_ID = {t.id: t for t in DEFAULT_TIERS}

DISCOUNT_CODES: dict[str, int] = {
    "LAUNCH2024": 20,
    "EARLY50": 50,
    "FRIEND10": 10,
    "HONEY25": 25,
}


def tier_granularity(tier_id: str | None) -> str:
    tier = TIERS_BY_ID.get(tier_id or "")
    return tier.granularity if tier else GRANULARITY_SCRIPT


def lookup_discount(code: str | None) -> tuple[str, int]:
    """Return (normalized code, percentage) or raise InvalidDiscountCode."""
    normalized = (code or "").strip().upper()
    if normalized not in DISCOUNT_CODES:
        raise InvalidDiscountCode("Invalid discount code")
    return normalized, DISCOUNT_CODES[normalized]


def apply_discount(amount: int, code: str | None) -> tuple[int, str, int]:
    """Discounted amount in minor units, plus the normalized code and percentage."""
    normalized, pct = lookup_discount(code)
    discounted = round(amount * (100 - pct) / 100)
    return discounted, normalized, pct


def _parse_price(value) -> int | None:
    try:
        price = int(float(str(value).strip().lstrip("$")))
    except (TypeError, ValueError):
        return None
    return price if price >= 0 else None


async def get_tiers(session: AsyncSession) -> list[Tier]:
    keys = [t.setting_key for t in DEFAULT_TIERS if t.setting_key]
    res = await session.execute(select(SiteSetting).where(SiteSetting.setting_key.in_(keys)))
    overrides = {row.setting_key: row.setting_value for row in res.scalars().all()}
    tiers = []
    for tier in DEFAULT_TIERS:
        if tier.setting_key and tier.setting_key in overrides:
            price = _parse_price(overrides[tier.setting_key])
            if price is None:
                logger.warning(f"[pricing] ignoring bad price setting {tier.setting_key}={overrides[tier.setting_key]!r}")
            else:
                tier = replace(tier, price=price)
        tiers.append(tier)
    return tiers


async def get_tier(session: AsyncSession, tier_id: str) -> Tier:
    for tier in await get_tiers(session):
        if tier.id == tier_id:
            return tier
    raise UnknownTier(f"Unknown tier: {tier_id}")


async def quote(session: AsyncSession, tier_id: str, discount_code: str | None = None) -> dict:
    tier = await get_tier(session, tier_id)
    result = {
        "tier_id": tier.id,
        "original_amount": tier.amount,
        "amount": tier.amount,
        "discount_code": None,
        "discount_percentage": None,
    }
    if discount_code and discount_code.strip():
        amount, code, pct = apply_discount(tier.amount, discount_code)
        result.update(amount=amount, discount_code=code, discount_percentage=pct)
    return result
