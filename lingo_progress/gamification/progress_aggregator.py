"""Progress aggregation over the point ledger and the content hierarchy."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional, Set, Tuple

import structlog
from sqlalchemy import and_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lingo_progress.content.hierarchy import ContentHierarchy, ContentProvider
from lingo_progress.core.config import settings
from lingo_progress.core.exceptions import LearnerNotFound, PersistenceFailure
from lingo_progress.gamification.achievements import AchievementStats, earned_achievements
from lingo_progress.gamification.metrics import (
    compute_level, compute_streaks, is_recently_active, quiz_score, recent_daily_points
)
from lingo_progress.models.gamification import COMPLETION_ACTIVITIES, ActivityType, PointAward, ReferenceType
from lingo_progress.models.user import User
from lingo_progress.schemas.progress import (
    CompletionStats, CourseProgress, DailyActivity, EarnedAchievement, LessonProgress, ProgressSnapshot
)

logger = structlog.get_logger()

_LEDGER_COLUMNS = (
    PointAward.id,
    PointAward.activity_type,
    PointAward.reference_id,
    PointAward.reference_type,
    PointAward.points,
    PointAward.language,
    PointAward.award_metadata,
    PointAward.awarded_at,
)

# Rows whose metadata score counts toward a quiz's best score
_SCORED_ACTIVITIES = frozenset({ActivityType.COMPLETE_QUIZ.value, ActivityType.IMPROVEMENT_BONUS.value})


@dataclass
class LedgerFold:
    """Running state accumulated over ledger batches.

    Completion and best scores look at every row; points, days and counts
    only at rows in the requested language, if one was given.
    """
    language: Optional[str] = None
    rows: int = 0
    total_points: int = 0
    points_by_language: Dict[str, int] = field(default_factory=dict)
    completed: Set[Tuple[str, int]] = field(default_factory=set)
    best_scores: Dict[int, float] = field(default_factory=dict)
    points_by_day: Dict[date, int] = field(default_factory=dict)
    activities_by_day: Dict[date, Dict[str, int]] = field(default_factory=dict)
    languages_by_day: Dict[date, Set[str]] = field(default_factory=dict)
    last_activity_at: Optional[datetime] = None
    quizzes_completed: int = 0
    lessons_completed: int = 0
    perfect_quizzes: int = 0

    def add(self, row) -> None:
        self.rows += 1
        score = quiz_score(row.award_metadata)

        if row.reference_type is not None:
            if row.activity_type in COMPLETION_ACTIVITIES.get(row.reference_type, ()):
                self.completed.add((row.reference_type, row.reference_id))
            if row.reference_type == ReferenceType.QUIZ.value and row.activity_type in _SCORED_ACTIVITIES \
                    and score is not None:
                best = self.best_scores.get(row.reference_id)
                self.best_scores[row.reference_id] = score if best is None else max(best, score)

        if row.language:
            self.points_by_language[row.language] = self.points_by_language.get(row.language, 0) + row.points

        if self.language and row.language != self.language:
            return

        self.total_points += row.points
        day = row.awarded_at.date()
        self.points_by_day[day] = self.points_by_day.get(day, 0) + row.points
        counts = self.activities_by_day.setdefault(day, {})
        counts[row.activity_type] = counts.get(row.activity_type, 0) + 1
        if row.language:
            self.languages_by_day.setdefault(day, set()).add(row.language)
        if self.last_activity_at is None or row.awarded_at > self.last_activity_at:
            self.last_activity_at = row.awarded_at

        if row.activity_type == ActivityType.COMPLETE_QUIZ.value:
            self.quizzes_completed += 1
            if score is not None and score >= 100:
                self.perfect_quizzes += 1
        elif row.activity_type == ActivityType.COMPLETE_LESSON.value:
            self.lessons_completed += 1

    def completion_stats(self) -> CompletionStats:
        """Distinct completions per content type and the mean of best quiz scores."""
        by_type: Dict[str, int] = {}
        for reference_type, _ in self.completed:
            by_type[reference_type] = by_type.get(reference_type, 0) + 1
        scores = list(self.best_scores.values())
        return CompletionStats(
            total_completions=len(self.completed),
            quizzes_completed=by_type.get(ReferenceType.QUIZ.value, 0),
            lessons_completed=by_type.get(ReferenceType.LESSON.value, 0),
            topics_completed=by_type.get(ReferenceType.TOPIC.value, 0),
            games_completed=by_type.get(ReferenceType.GAME.value, 0),
            vocabulary_completed=by_type.get(ReferenceType.VOCABULARY.value, 0),
            average_score=round(sum(scores) / len(scores), 2) if scores else 0.0
        )


class ProgressAggregator:
    """Rebuilds a learner's progress snapshot. Read-only."""

    def __init__(self, db: AsyncSession, content: ContentProvider, batch_size: Optional[int] = None):
        self.db = db
        self.content = content
        self.batch_size = batch_size or settings.LEDGER_BATCH_SIZE

    async def get_progress(self, learner_id: int, language: Optional[str] = None) -> ProgressSnapshot:
        """Compute total points, completion and derived metrics for a learner.

        Raises LearnerNotFound for unknown or deleted learners and
        PersistenceFailure when storage cannot be read.
        """
        # An empty language filter means all languages
        language = language or None

        try:
            await self._ensure_learner(learner_id)
            fold = await self.fold_ledger(learner_id, language)
        except SQLAlchemyError as e:
            logger.error("Failed to read ledger", learner_id=learner_id, error=str(e))
            raise PersistenceFailure("Could not read progress") from e

        hierarchy = await self.content.load_published(language)
        snapshot = self._build_snapshot(learner_id, language, fold, hierarchy)

        logger.info(
            "Progress computed",
            learner_id=learner_id,
            ledger_rows=fold.rows,
            total_points=snapshot.total_points,
            courses=len(snapshot.courses)
        )
        return snapshot

    async def fold_ledger(self, learner_id: int, language: Optional[str] = None) -> LedgerFold:
        """Fold the learner's ledger in keyset batches, oldest first."""
        fold = LedgerFold(language=language)
        last_id = 0

        while True:
            result = await self.db.execute(
                select(*_LEDGER_COLUMNS)
                .where(and_(PointAward.learner_id == learner_id, PointAward.id > last_id))
                .order_by(PointAward.id)
                .limit(self.batch_size)
            )
            rows = result.all()
            for row in rows:
                fold.add(row)
            if len(rows) < self.batch_size:
                break
            last_id = rows[-1].id

        return fold

    async def _ensure_learner(self, learner_id: int) -> None:
        result = await self.db.execute(
            select(User.id).where(and_(User.id == learner_id, User.deleted_at.is_(None)))
        )
        if result.scalar_one_or_none() is None:
            raise LearnerNotFound(f"Learner {learner_id} not found")

    def _build_snapshot(
        self,
        learner_id: int,
        language: Optional[str],
        fold: LedgerFold,
        hierarchy: ContentHierarchy
    ) -> ProgressSnapshot:
        now = datetime.utcnow()
        today = now.date()

        courses = []
        for course in hierarchy.courses:
            lessons = []
            course_leaves = set()
            for lesson in course.lessons:
                keys = {leaf.key for leaf in lesson.leaves}
                course_leaves |= keys
                done = len(keys & fold.completed)
                if keys:
                    completed = done == len(keys)
                else:
                    completed = (ReferenceType.LESSON.value, lesson.id) in fold.completed
                lessons.append(LessonProgress(
                    lesson_id=lesson.id,
                    title=lesson.title,
                    completed_leaves=done,
                    total_leaves=len(keys),
                    completed=completed
                ))

            completed_leaves = len(course_leaves & fold.completed)
            courses.append(CourseProgress(
                course_id=course.id,
                title=course.title,
                language=course.language,
                completed_leaves=completed_leaves,
                total_leaves=len(course_leaves),
                completion_ratio=completed_leaves / len(course_leaves) if course_leaves else 0.0,
                completed_lessons=sum(1 for lesson in lessons if lesson.completed),
                total_lessons=len(lessons),
                lessons=lessons
            ))

        level, points_to_next_level = compute_level(fold.total_points, settings.LEVEL_BASE_POINTS)
        current_streak, longest_streak = compute_streaks(fold.points_by_day, today)
        stats = AchievementStats(
            total_points=fold.total_points,
            longest_streak=longest_streak,
            quizzes_completed=fold.quizzes_completed,
            lessons_completed=fold.lessons_completed,
            perfect_quizzes=fold.perfect_quizzes
        )

        return ProgressSnapshot(
            learner_id=learner_id,
            language=language,
            total_points=fold.total_points,
            points_by_language=fold.points_by_language,
            level=level,
            points_to_next_level=points_to_next_level,
            current_streak=current_streak,
            longest_streak=longest_streak,
            active_days=len(fold.points_by_day),
            last_activity_at=fold.last_activity_at,
            is_active=is_recently_active(fold.last_activity_at, now, settings.ACTIVE_WINDOW_DAYS),
            recent_activity=[
                DailyActivity(
                    day=day,
                    points=points,
                    activities=fold.activities_by_day.get(day, {}),
                    languages=sorted(fold.languages_by_day.get(day, ()))
                )
                for day, points in recent_daily_points(fold.points_by_day, today, settings.RECENT_ACTIVITY_DAYS)
            ],
            courses=courses,
            completion_stats=fold.completion_stats(),
            achievements=[
                EarnedAchievement(
                    key=a.key,
                    title=a.title,
                    description=a.description,
                    icon=a.icon,
                    category=a.category.value
                )
                for a in earned_achievements(stats)
            ],
            generated_at=now
        )
