"""Points calculation and awarding engine.

Every award is one appended row in the ``point_awards`` ledger. Totals are
never stored; they are recomputed from the ledger on read.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lingo_progress.content.hierarchy import ContentProvider
from lingo_progress.core.config import settings
from lingo_progress.core.exceptions import InvalidActivity, InvalidReference, PersistenceFailure
from lingo_progress.gamification.metrics import quiz_score
from lingo_progress.models.gamification import ActivityType, PointAward, ReferenceType

logger = structlog.get_logger()

# Activity/reference pairs whose points come from the referenced content
_CONTENT_VALUED = {
    ActivityType.COMPLETE_QUIZ: ReferenceType.QUIZ.value,
    ActivityType.COMPLETE_TOPIC: ReferenceType.TOPIC.value,
}


class DuplicatePolicy(str, Enum):
    """What to do when a learner repeats an activity on the same reference."""
    ALLOW = "allow"
    ONCE = "once"
    IMPROVEMENT = "improvement"


@dataclass(frozen=True)
class AwardResult:
    points_granted: int
    award_id: Optional[int]
    activity_type: str
    duplicate: bool = False


def parse_activity(activity_type: Any) -> ActivityType:
    try:
        return ActivityType(activity_type)
    except ValueError:
        raise InvalidActivity(f"Unknown activity type: {activity_type!r}")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PointsEngine:
    """Engine for calculating and awarding points."""

    def __init__(self, db: AsyncSession, content: ContentProvider, policy: Optional[str] = None):
        self.db = db
        self.content = content
        self.policy = DuplicatePolicy(policy or settings.DUPLICATE_AWARD_POLICY)

    async def award_points(
        self,
        learner_id: int,
        activity_type: Any,
        reference_id: Optional[int] = None,
        reference_type: Optional[str] = None,
        language: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AwardResult:
        """Validate an activity and append its award to the ledger.

        Raises InvalidActivity or InvalidReference before touching storage,
        and PersistenceFailure if the read or the insert fails.
        """
        activity = parse_activity(activity_type)
        if activity is ActivityType.IMPROVEMENT_BONUS:
            raise InvalidActivity("IMPROVEMENT_BONUS is granted by the engine, not by callers")
        reference_type = self._check_reference(reference_id, reference_type)
        metadata = dict(metadata or {})

        try:
            if reference_type is not None and self.policy is not DuplicatePolicy.ALLOW:
                duplicate = await self._handle_duplicate(
                    learner_id, activity, reference_id, reference_type, language, metadata
                )
                if duplicate is not None:
                    return duplicate

            points, description = await self.calculate_event_points(
                activity, reference_type, reference_id, metadata
            )
            award_id = await self._append(
                learner_id, activity, points, description,
                reference_id, reference_type, language, metadata
            )
        except SQLAlchemyError as e:
            logger.error("Failed to award points", learner_id=learner_id, error=str(e))
            await self.db.rollback()
            raise PersistenceFailure("Could not record the award") from e

        logger.info(
            "Points awarded",
            learner_id=learner_id,
            activity_type=activity.value,
            points=points,
            reference_type=reference_type,
            reference_id=reference_id
        )
        return AwardResult(points_granted=points, award_id=award_id, activity_type=activity.value)

    async def calculate_event_points(
        self,
        activity: ActivityType,
        reference_type: Optional[str],
        reference_id: Optional[int],
        metadata: Dict[str, Any]
    ) -> Tuple[int, str]:
        """Points and ledger description for one activity."""
        base_points = settings.points_policy()[activity.value]
        description = activity.value.replace("_", " ").capitalize()

        if reference_type is not None and _CONTENT_VALUED.get(activity) == reference_type:
            configured = await self.content.get_points_value(reference_type, reference_id)
            if configured is None:
                logger.warning(
                    "Referenced content has no configured points, using policy value",
                    reference_type=reference_type,
                    reference_id=reference_id
                )
            else:
                base_points = configured
                description = f"Completed {reference_type} #{reference_id}"

        # Quiz bonuses
        if activity is ActivityType.COMPLETE_QUIZ:
            score = quiz_score(metadata)
            if score is not None and score >= 100:
                base_points += settings.POINTS_PERFECT_SCORE_BONUS
                description += " with perfect score"
            if metadata.get("time_bonus") or metadata.get("timeBonus"):
                base_points += settings.POINTS_TIME_BONUS
                description += " quickly"

        return max(base_points, 0), description

    async def find_awards(
        self,
        learner_id: int,
        reference_type: str,
        reference_ids: Sequence[int],
        activity_type: Optional[str] = None
    ) -> List[PointAward]:
        """Ledger rows of a learner that reference any of the given ids.

        This backs the caller-side "award once" check.
        """
        if not reference_ids:
            return []
        try:
            reference_type = ReferenceType(reference_type).value
        except ValueError:
            raise InvalidReference(f"Unknown reference type: {reference_type!r}")

        conditions = [
            PointAward.learner_id == learner_id,
            PointAward.reference_type == reference_type,
            PointAward.reference_id.in_(list(reference_ids)),
        ]
        if activity_type is not None:
            conditions.append(PointAward.activity_type == parse_activity(activity_type).value)

        try:
            result = await self.db.execute(
                select(PointAward).where(and_(*conditions)).order_by(PointAward.id)
            )
        except SQLAlchemyError as e:
            logger.error("Failed to look up awards", learner_id=learner_id, error=str(e))
            raise PersistenceFailure("Could not read awards") from e
        return list(result.scalars().all())

    async def award_history(self, learner_id: int, limit: int = 50, offset: int = 0) -> List[PointAward]:
        """Newest ledger rows first."""
        try:
            result = await self.db.execute(
                select(PointAward)
                .where(PointAward.learner_id == learner_id)
                .order_by(PointAward.id.desc())
                .offset(offset)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            logger.error("Failed to read award history", learner_id=learner_id, error=str(e))
            raise PersistenceFailure("Could not read awards") from e
        return list(result.scalars().all())

    @staticmethod
    def _check_reference(reference_id: Optional[int], reference_type: Optional[str]) -> Optional[str]:
        if reference_type == "":
            reference_type = None
        if (reference_id is None) != (reference_type is None):
            raise InvalidReference("reference_id and reference_type must be given together")
        if reference_type is None:
            return None

        if isinstance(reference_id, bool) or not isinstance(reference_id, int) or reference_id <= 0:
            raise InvalidReference(f"Invalid reference id: {reference_id!r}")
        try:
            return ReferenceType(reference_type).value
        except ValueError:
            raise InvalidReference(f"Unknown reference type: {reference_type!r}")

    async def _handle_duplicate(
        self,
        learner_id: int,
        activity: ActivityType,
        reference_id: int,
        reference_type: str,
        language: Optional[str],
        metadata: Dict[str, Any]
    ) -> Optional[AwardResult]:
        """Apply the duplicate policy. Returns None for a first-time award."""
        # Read-then-insert; two concurrent first awards can both pass
        result = await self.db.execute(
            select(PointAward.activity_type, PointAward.award_metadata).where(
                and_(
                    PointAward.learner_id == learner_id,
                    PointAward.reference_type == reference_type,
                    PointAward.reference_id == reference_id,
                    PointAward.activity_type.in_([activity.value, ActivityType.IMPROVEMENT_BONUS.value])
                )
            )
        )
        prior = result.all()
        if not any(row.activity_type == activity.value for row in prior):
            return None

        skipped = AwardResult(points_granted=0, award_id=None, activity_type=activity.value, duplicate=True)

        score = quiz_score(metadata)
        if (
            self.policy is not DuplicatePolicy.IMPROVEMENT
            or activity is not ActivityType.COMPLETE_QUIZ
            or reference_type != ReferenceType.QUIZ.value
            or score is None
        ):
            logger.info("Repeat award skipped", learner_id=learner_id, activity_type=activity.value,
                        reference_type=reference_type, reference_id=reference_id)
            return skipped

        prior_scores = [s for s in (quiz_score(row.award_metadata or {}) for row in prior) if s is not None]
        best = max(prior_scores, default=0.0)
        bonus = _round_half_up(settings.POINTS_COMPLETE_QUIZ * settings.IMPROVEMENT_BONUS_RATIO)
        if score <= best or bonus <= 0:
            return skipped

        award_id = await self._append(
            learner_id,
            ActivityType.IMPROVEMENT_BONUS,
            bonus,
            f"Score improvement: {best:g}% -> {score:g}%",
            reference_id,
            reference_type,
            language,
            metadata
        )
        logger.info("Improvement bonus awarded", learner_id=learner_id, reference_id=reference_id,
                    points=bonus, previous_best=best, score=score)
        return AwardResult(
            points_granted=bonus,
            award_id=award_id,
            activity_type=ActivityType.IMPROVEMENT_BONUS.value,
            duplicate=True
        )

    async def _append(
        self,
        learner_id: int,
        activity: ActivityType,
        points: int,
        description: str,
        reference_id: Optional[int],
        reference_type: Optional[str],
        language: Optional[str],
        metadata: Dict[str, Any]
    ) -> int:
        award = PointAward(
            learner_id=learner_id,
            activity_type=activity.value,
            reference_id=reference_id,
            reference_type=reference_type,
            points=points,
            language=language,
            description=description[:255],
            award_metadata=metadata or None
        )
        self.db.add(award)
        await self.db.flush()
        award_id = award.id
        await self.db.commit()
        return award_id
