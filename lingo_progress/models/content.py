"""Read-only mappings of the content catalog tables.

The catalog is authored by the content service; this service never writes to
these tables.
"""

from sqlalchemy import Column, String, Integer, Boolean

from lingo_progress.core.database import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    language = Column(String(20), nullable=False)
    course_order = Column(Integer, default=0)
    is_published = Column(Boolean, default=False)


class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True)
    course_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    lesson_order = Column(Integer, default=0)
    is_published = Column(Boolean, default=False)


class Topic(Base):
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True)
    lesson_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    topic_order = Column(Integer, default=0)
    points_value = Column(Integer, default=10)
    is_published = Column(Boolean, default=False)


class Quiz(Base):
    """A quiz hangs off a lesson directly or through one of its topics."""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True)
    lesson_id = Column(Integer, index=True)
    topic_id = Column(Integer, index=True)
    title = Column(String(200), nullable=False)
    points_value = Column(Integer, default=25)
    is_published = Column(Boolean, default=False)


class Game(Base):
    """Games have no published flag; ``is_active`` plays that role."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    lesson_id = Column(Integer, index=True)
    title = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True)
