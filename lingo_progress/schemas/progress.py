"""Progress snapshot schemas."""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import Field

from lingo_progress.schemas.base import CamelModel


class LessonProgress(CamelModel):
    lesson_id: int
    title: str
    completed_leaves: int
    total_leaves: int
    completed: bool


class CourseProgress(CamelModel):
    course_id: int
    title: str
    language: Optional[str] = None
    completed_leaves: int
    total_leaves: int
    completion_ratio: float = Field(ge=0.0, le=1.0)
    completed_lessons: int
    total_lessons: int
    lessons: List[LessonProgress] = Field(default_factory=list)


class DailyActivity(CamelModel):
    day: date
    points: int
    # Award count per activity type
    activities: Dict[str, int] = Field(default_factory=dict)
    languages: List[str] = Field(default_factory=list)


class CompletionStats(CamelModel):
    """Distinct completed content per type. Repeats count once."""
    total_completions: int = 0
    quizzes_completed: int = 0
    lessons_completed: int = 0
    topics_completed: int = 0
    games_completed: int = 0
    vocabulary_completed: int = 0
    # Mean of each quiz's best score; 0 when no scored quiz exists
    average_score: float = 0.0


class EarnedAchievement(CamelModel):
    key: str
    title: str
    description: str
    icon: str
    category: str


class ProgressSnapshot(CamelModel):
    """A learner's standing, recomputed from the ledger on every request."""
    learner_id: int
    language: Optional[str] = None
    total_points: int
    points_by_language: Dict[str, int] = Field(default_factory=dict)
    level: int
    points_to_next_level: int
    current_streak: int
    longest_streak: int
    active_days: int
    last_activity_at: Optional[datetime] = None
    is_active: bool
    recent_activity: List[DailyActivity] = Field(default_factory=list)
    courses: List[CourseProgress] = Field(default_factory=list)
    completion_stats: CompletionStats = Field(default_factory=CompletionStats)
    achievements: List[EarnedAchievement] = Field(default_factory=list)
    generated_at: datetime
