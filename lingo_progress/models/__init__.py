"""Data models for the Lingo Progress Service."""

from lingo_progress.models.gamification import (
    ActivityType,
    ReferenceType,
    COMPLETION_ACTIVITIES,
    PointAward,
    ActivityLog,
)
from lingo_progress.models.content import Course, Lesson, Topic, Quiz, Game
from lingo_progress.models.user import User

__all__ = [
    "ActivityType",
    "ReferenceType",
    "COMPLETION_ACTIVITIES",
    "PointAward",
    "ActivityLog",
    "Course",
    "Lesson",
    "Topic",
    "Quiz",
    "Game",
    "User",
]
