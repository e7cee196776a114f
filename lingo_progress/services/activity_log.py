"""Best-effort activity logging shared with the rest of the platform."""

from enum import Enum
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lingo_progress.core.config import settings
from lingo_progress.models.gamification import ActivityLog

logger = structlog.get_logger()


class ActivityAction(str, Enum):
    EARN_POINTS = "EARN_POINTS"
    VIEW_PROGRESS = "VIEW_PROGRESS"


async def log_activity(
    db: AsyncSession,
    user_id: int,
    action: ActivityAction,
    ip_address: Optional[str] = None
) -> bool:
    """Record an action in ``activity_logs``.

    Failures are logged and swallowed; they must never fail the request that
    triggered them. Returns whether the entry was written.
    """
    if not settings.ACTIVITY_LOG_ENABLED:
        return False

    db.add(ActivityLog(user_id=user_id, action=action.value, ip_address=ip_address or ""))
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.warning("Activity not logged", user_id=user_id, action=action.value, error=str(e))
        try:
            await db.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback after activity log failure failed", user_id=user_id)
        return False

    logger.debug("Activity logged", user_id=user_id, action=action.value)
    return True
