"""Request and response schemas for point awards."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from lingo_progress.models.gamification import PointAward
from lingo_progress.schemas.base import CamelModel


class AwardRequest(CamelModel):
    """Body of ``POST /award``. The learner comes from the session.

    Activity and reference fields are taken as sent; the points engine
    rejects bad values as InvalidActivity or InvalidReference.
    """
    activity_type: Any = None
    reference_id: Any = None
    reference_type: Any = None
    language: Optional[str] = Field(default=None, max_length=20)
    metadata: Optional[Dict[str, Any]] = None


class AwardResponse(CamelModel):
    points_granted: int
    award_id: Optional[int] = None
    activity_type: str
    duplicate: bool = False


class PointAwardResponse(CamelModel):
    """One ledger row."""
    id: int
    activity_type: str
    reference_id: Optional[int] = None
    reference_type: Optional[str] = None
    points: int
    language: Optional[str] = None
    description: str
    metadata: Optional[Dict[str, Any]] = None
    awarded_at: datetime

    @classmethod
    def from_award(cls, award: PointAward) -> "PointAwardResponse":
        return cls(
            id=award.id,
            activity_type=award.activity_type,
            reference_id=award.reference_id,
            reference_type=award.reference_type,
            points=award.points,
            language=award.language,
            description=award.description,
            metadata=award.award_metadata,
            awarded_at=award.awarded_at,
        )


class ActivityTypeResponse(CamelModel):
    activity_type: str
    base_points: int
    completes: Optional[str] = None
