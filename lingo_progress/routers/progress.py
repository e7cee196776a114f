"""Progress endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from lingo_progress.content.hierarchy import ContentProvider
from lingo_progress.core.database import get_db
from lingo_progress.core.dependencies import CurrentUser, get_content_provider, get_current_user
from lingo_progress.core.permissions import ensure_can_view_progress
from lingo_progress.gamification.progress_aggregator import ProgressAggregator
from lingo_progress.schemas.progress import ProgressSnapshot
from lingo_progress.services.activity_log import ActivityAction, log_activity

logger = structlog.get_logger()
router = APIRouter()


async def _snapshot(
    learner_id: int,
    language: Optional[str],
    request: Request,
    current_user: CurrentUser,
    db: AsyncSession,
    content: ContentProvider
) -> ProgressSnapshot:
    # Checked before the aggregator runs so nothing leaks on refusal
    ensure_can_view_progress(current_user.role, current_user.user_id, learner_id)

    snapshot = await ProgressAggregator(db, content).get_progress(learner_id, language=language)

    await log_activity(
        db,
        current_user.user_id,
        ActivityAction.VIEW_PROGRESS,
        request.client.host if request.client else None
    )
    return snapshot


@router.get("/me", response_model=ProgressSnapshot)
async def get_my_progress(
    request: Request,
    language: Optional[str] = Query(None, max_length=20),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider)
):
    """Get the caller's own progress snapshot."""
    return await _snapshot(current_user.user_id, language, request, current_user, db, content)


@router.get("/{learner_id}", response_model=ProgressSnapshot)
async def get_learner_progress(
    learner_id: int,
    request: Request,
    language: Optional[str] = Query(None, max_length=20),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider)
):
    """Get a learner's progress snapshot."""
    return await _snapshot(learner_id, language, request, current_user, db, content)
