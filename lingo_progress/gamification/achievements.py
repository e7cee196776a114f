"""Achievement definitions and criteria.

Achievements are derived from ledger statistics on every read. They carry no
points of their own, so a learner's total stays the plain sum of the ledger.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List


class AchievementCategory(str, Enum):
    """Achievement categories."""
    QUIZ = "quiz"
    LESSON = "lesson"
    STREAK = "streak"
    MILESTONE = "milestone"


@dataclass(frozen=True)
class AchievementStats:
    """The slice of the ledger fold that achievement criteria look at."""
    total_points: int
    longest_streak: int
    quizzes_completed: int
    lessons_completed: int
    perfect_quizzes: int


@dataclass(frozen=True)
class Achievement:
    key: str
    title: str
    description: str
    icon: str
    category: AchievementCategory
    criteria: Callable[[AchievementStats], bool]


def _streak(days: int) -> Callable[[AchievementStats], bool]:
    return lambda stats: stats.longest_streak >= days


def _points(threshold: int) -> Callable[[AchievementStats], bool]:
    return lambda stats: stats.total_points >= threshold


ACHIEVEMENTS: List[Achievement] = [
    Achievement("first_quiz", "First Steps", "Completed your first quiz!", "🎯",
                AchievementCategory.QUIZ, lambda stats: stats.quizzes_completed > 0),
    Achievement("quiz_perfectionist", "Perfectionist", "Scored 100% on a quiz!", "💯",
                AchievementCategory.QUIZ, lambda stats: stats.perfect_quizzes > 0),
    Achievement("lesson_completed", "Lesson Learner", "Completed your first lesson!", "📚",
                AchievementCategory.LESSON, lambda stats: stats.lessons_completed > 0),
    Achievement("streak_7_days", "Week Warrior", "7 days learning streak!", "🔥",
                AchievementCategory.STREAK, _streak(7)),
    Achievement("streak_30_days", "Month Master", "30 days learning streak!", "🏆",
                AchievementCategory.STREAK, _streak(30)),
    Achievement("streak_100_days", "Century Scholar", "100 days learning streak!", "👑",
                AchievementCategory.STREAK, _streak(100)),
    Achievement("points_milestone_100", "Point Collector", "Earned 100 total points!", "⭐",
                AchievementCategory.MILESTONE, _points(100)),
    Achievement("points_milestone_500", "Point Master", "Earned 500 total points!", "🌟",
                AchievementCategory.MILESTONE, _points(500)),
    Achievement("points_milestone_1000", "Point Legend", "Earned 1000 total points!", "💫",
                AchievementCategory.MILESTONE, _points(1000)),
]


def earned_achievements(stats: AchievementStats) -> List[Achievement]:
    """Achievements whose criteria the stats satisfy, in definition order."""
    return [achievement for achievement in ACHIEVEMENTS if achievement.criteria(stats)]
