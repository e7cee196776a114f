"""Gamification endpoints."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from lingo_progress.content.hierarchy import ContentProvider
from lingo_progress.core.config import settings
from lingo_progress.core.database import get_db
from lingo_progress.core.dependencies import CurrentUser, get_content_provider, get_current_user
from lingo_progress.core.exceptions import InvalidReference
from lingo_progress.core.permissions import ensure_can_view_progress
from lingo_progress.gamification.points_engine import PointsEngine
from lingo_progress.models.gamification import COMPLETION_ACTIVITIES, ActivityType
from lingo_progress.schemas.gamification import (
    ActivityTypeResponse, AwardRequest, AwardResponse, PointAwardResponse
)
from lingo_progress.services.activity_log import ActivityAction, log_activity

logger = structlog.get_logger()
router = APIRouter()


@router.post("/award", response_model=AwardResponse)
async def award_points(
    award: AwardRequest,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider)
):
    """Award points to the calling learner for a completed activity."""
    engine = PointsEngine(db, content)
    result = await engine.award_points(
        current_user.user_id,
        award.activity_type,
        reference_id=award.reference_id,
        reference_type=award.reference_type,
        language=award.language,
        metadata=award.metadata
    )

    if result.award_id is not None:
        await log_activity(
            db,
            current_user.user_id,
            ActivityAction.EARN_POINTS,
            request.client.host if request.client else None
        )

    return AwardResponse(
        points_granted=result.points_granted,
        award_id=result.award_id,
        activity_type=result.activity_type,
        duplicate=result.duplicate
    )


@router.get("/awards/{learner_id}", response_model=List[PointAwardResponse])
async def get_award_history(
    learner_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider)
):
    """Get point awards for a learner, newest first."""
    ensure_can_view_progress(current_user.role, current_user.user_id, learner_id)

    awards = await PointsEngine(db, content).award_history(learner_id, limit=limit, offset=offset)
    return [PointAwardResponse.from_award(award) for award in awards]


@router.get("/awards/{learner_id}/references", response_model=List[PointAwardResponse])
async def get_awards_for_references(
    learner_id: int,
    reference_type: str = Query(...),
    reference_ids: str = Query("", description="Comma-separated content ids"),
    activity_type: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider)
):
    """Prior awards referencing the given content, for award-once callers."""
    ensure_can_view_progress(current_user.role, current_user.user_id, learner_id)

    try:
        ids = [int(part) for part in reference_ids.split(",") if part.strip()]
    except ValueError:
        raise InvalidReference(f"Invalid reference ids: {reference_ids!r}")

    awards = await PointsEngine(db, content).find_awards(
        learner_id, reference_type, ids, activity_type=activity_type
    )
    return [PointAwardResponse.from_award(award) for award in awards]


@router.get("/activity-types", response_model=List[ActivityTypeResponse])
async def get_activity_types():
    """List awardable activity types with their base points."""
    policy = settings.points_policy()
    completes = {
        activity: reference_type
        for reference_type, activities in COMPLETION_ACTIVITIES.items()
        for activity in activities
    }
    return [
        ActivityTypeResponse(
            activity_type=activity.value,
            base_points=policy[activity.value],
            completes=completes.get(activity.value)
        )
        for activity in ActivityType
        if activity is not ActivityType.IMPROVEMENT_BONUS
    ]
