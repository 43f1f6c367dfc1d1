"""Admin activity trail (the `log_activity` procedure)."""
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from scriptdesk.models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: int | None = None,
    actor: str | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    """Stage an activity row on the caller's session; committed with the caller's change."""
    entry = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        details=details,
    )
    session.add(entry)
    logger.info(f"[activity] {action} {entity_type}#{entity_id} by {actor or 'system'}")
    return entry
