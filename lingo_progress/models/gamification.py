"""Gamification models: the point ledger and the activity log."""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet
from sqlalchemy import Column, String, Integer, DateTime, Index, JSON

from lingo_progress.core.database import Base


class ActivityType(str, Enum):
    """Learning actions that can earn points."""
    COMPLETE_QUIZ = "COMPLETE_QUIZ"
    COMPLETE_LESSON = "COMPLETE_LESSON"
    COMPLETE_TOPIC = "COMPLETE_TOPIC"
    COMPLETE_GAME = "COMPLETE_GAME"
    PLAY_GAME = "PLAY_GAME"
    STUDY_VOCABULARY = "STUDY_VOCABULARY"
    COMPLETE_VOCABULARY = "COMPLETE_VOCABULARY"
    IMPROVEMENT_BONUS = "IMPROVEMENT_BONUS"


class ReferenceType(str, Enum):
    """Content entities an award can point back to."""
    COURSE = "course"
    LESSON = "lesson"
    TOPIC = "topic"
    QUIZ = "quiz"
    GAME = "game"
    VOCABULARY = "vocabulary"


# Activities that mark a referenced node as completed
COMPLETION_ACTIVITIES: Dict[str, FrozenSet[str]] = {
    ReferenceType.QUIZ.value: frozenset({ActivityType.COMPLETE_QUIZ.value}),
    ReferenceType.TOPIC.value: frozenset({ActivityType.COMPLETE_TOPIC.value}),
    ReferenceType.GAME.value: frozenset({ActivityType.COMPLETE_GAME.value, ActivityType.PLAY_GAME.value}),
    ReferenceType.LESSON.value: frozenset({ActivityType.COMPLETE_LESSON.value}),
    ReferenceType.VOCABULARY.value: frozenset({ActivityType.COMPLETE_VOCABULARY.value}),
}


class PointAward(Base):
    """Immutable ledger entry. Rows are inserted, never updated."""
    __tablename__ = "point_awards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(Integer, nullable=False, index=True)
    # Stored as text so retired activity types still load
    activity_type = Column(String(50), nullable=False)
    reference_id = Column(Integer)
    reference_type = Column(String(50))
    points = Column(Integer, nullable=False)
    language = Column(String(20))
    description = Column(String(255), nullable=False)
    award_metadata = Column("metadata", JSON)
    awarded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_point_awards_learner_id_id", "learner_id", "id"),
        Index("ix_point_awards_learner_reference", "learner_id", "reference_type", "reference_id"),
    )


class ActivityLog(Base):
    """Audit trail of user actions, shared with the rest of the platform."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    action = Column(String(50), nullable=False)
    ip_address = Column(String(45))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
