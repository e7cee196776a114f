"""Read access to the published content hierarchy.

Courses contain lessons; lessons contain the leaves (topics, quizzes, games)
that a learner completes one by one. Two sources are supported: the shared
relational store and the content service's HTTP API.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lingo_progress.core.exceptions import PersistenceFailure
from lingo_progress.models.content import Course, Game, Lesson, Quiz, Topic
from lingo_progress.models.gamification import ReferenceType

logger = structlog.get_logger()


@dataclass(frozen=True)
class LeafNode:
    id: int
    type: str
    title: str = ""
    points_value: Optional[int] = None

    @property
    def key(self):
        return (self.type, self.id)


@dataclass
class LessonNode:
    id: int
    title: str
    leaves: List[LeafNode] = field(default_factory=list)


@dataclass
class CourseNode:
    id: int
    title: str
    language: Optional[str]
    lessons: List[LessonNode] = field(default_factory=list)


@dataclass
class ContentHierarchy:
    courses: List[CourseNode] = field(default_factory=list)


class ContentProvider(ABC):
    """Read-only view of the content catalog."""

    @abstractmethod
    async def load_published(self, language: Optional[str] = None) -> ContentHierarchy:
        """Load published courses, lessons and leaves, optionally for one language."""

    @abstractmethod
    async def get_points_value(self, reference_type: str, reference_id: int) -> Optional[int]:
        """Configured points of a quiz or topic, or None if it has none."""


class DatabaseContentProvider(ContentProvider):
    """Reads the catalog tables from the shared database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_published(self, language: Optional[str] = None) -> ContentHierarchy:
        try:
            return await self._load_published(language)
        except SQLAlchemyError as e:
            logger.error("Failed to load content hierarchy", error=str(e))
            raise PersistenceFailure("Could not read the content hierarchy") from e

    async def _load_published(self, language: Optional[str]) -> ContentHierarchy:
        course_query = select(Course).where(Course.is_published == True)
        if language:
            course_query = course_query.where(Course.language == language)
        result = await self.db.execute(course_query.order_by(Course.course_order, Course.id))
        courses = result.scalars().all()
        if not courses:
            return ContentHierarchy()

        result = await self.db.execute(
            select(Lesson)
            .where(
                and_(
                    Lesson.course_id.in_([c.id for c in courses]),
                    Lesson.is_published == True
                )
            )
            .order_by(Lesson.lesson_order, Lesson.id)
        )
        lessons = result.scalars().all()
        lesson_ids = [lesson.id for lesson in lessons]

        leaves_by_lesson: Dict[int, List[LeafNode]] = {lesson_id: [] for lesson_id in lesson_ids}
        if lesson_ids:
            result = await self.db.execute(
                select(Topic)
                .where(and_(Topic.lesson_id.in_(lesson_ids), Topic.is_published == True))
                .order_by(Topic.topic_order, Topic.id)
            )
            topics = result.scalars().all()
            topic_lessons = {topic.id: topic.lesson_id for topic in topics}
            for topic in topics:
                leaves_by_lesson[topic.lesson_id].append(
                    LeafNode(topic.id, ReferenceType.TOPIC.value, topic.title, topic.points_value)
                )

            result = await self.db.execute(
                select(Quiz)
                .where(
                    and_(
                        Quiz.is_published == True,
                        or_(
                            Quiz.lesson_id.in_(lesson_ids),
                            and_(Quiz.lesson_id.is_(None), Quiz.topic_id.in_(list(topic_lessons)))
                        )
                    )
                )
                .order_by(Quiz.id)
            )
            for quiz in result.scalars().all():
                lesson_id = quiz.lesson_id if quiz.lesson_id is not None else topic_lessons[quiz.topic_id]
                leaves_by_lesson[lesson_id].append(
                    LeafNode(quiz.id, ReferenceType.QUIZ.value, quiz.title, quiz.points_value)
                )

            result = await self.db.execute(
                select(Game)
                .where(and_(Game.lesson_id.in_(lesson_ids), Game.is_active == True))
                .order_by(Game.id)
            )
            for game in result.scalars().all():
                leaves_by_lesson[game.lesson_id].append(
                    LeafNode(game.id, ReferenceType.GAME.value, game.title)
                )

        lessons_by_course: Dict[int, List[LessonNode]] = {c.id: [] for c in courses}
        for lesson in lessons:
            lessons_by_course[lesson.course_id].append(
                LessonNode(lesson.id, lesson.title, leaves_by_lesson[lesson.id])
            )

        return ContentHierarchy(courses=[
            CourseNode(c.id, c.title, c.language, lessons_by_course[c.id])
            for c in courses
        ])

    async def get_points_value(self, reference_type: str, reference_id: int) -> Optional[int]:
        if reference_type == ReferenceType.QUIZ.value:
            column = Quiz.points_value
            key = Quiz.id
        elif reference_type == ReferenceType.TOPIC.value:
            column = Topic.points_value
            key = Topic.id
        else:
            return None

        try:
            result = await self.db.execute(select(column).where(key == reference_id))
        except SQLAlchemyError as e:
            logger.error("Failed to read content points", reference_type=reference_type, error=str(e))
            raise PersistenceFailure("Could not read content points") from e
        return result.scalar_one_or_none()


class ContentServiceProvider(ContentProvider):
    """Reads the catalog from the content service over HTTP."""

    _PATHS = {
        ReferenceType.QUIZ.value: "quizzes",
        ReferenceType.TOPIC.value: "topics",
    }

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def load_published(self, language: Optional[str] = None) -> ContentHierarchy:
        params = {"published": "true"}
        if language:
            params["language"] = language
        payload = await self._get_json("/api/content/hierarchy", params=params)

        try:
            return self._parse_hierarchy(payload, language)
        except (AttributeError, KeyError, TypeError) as e:
            logger.error("Malformed content hierarchy", error=repr(e))
            raise PersistenceFailure("Content service returned a malformed hierarchy") from e

    def _parse_hierarchy(self, payload: Dict[str, Any], language: Optional[str]) -> ContentHierarchy:
        courses = []
        for course in payload.get("courses", []):
            if not course.get("is_published"):
                continue
            if language and course.get("language") != language:
                continue
            lessons = [
                LessonNode(lesson["id"], lesson.get("title", ""), self._leaves(lesson))
                for lesson in course.get("lessons", [])
                if lesson.get("is_published")
            ]
            courses.append(CourseNode(course["id"], course.get("title", ""), course.get("language"), lessons))

        return ContentHierarchy(courses=courses)

    @staticmethod
    def _leaves(lesson: Dict[str, Any]) -> List[LeafNode]:
        leaves = [
            LeafNode(topic["id"], ReferenceType.TOPIC.value, topic.get("title", ""), topic.get("points_value"))
            for topic in lesson.get("topics", [])
            if topic.get("is_published")
        ]
        leaves.extend(
            LeafNode(quiz["id"], ReferenceType.QUIZ.value, quiz.get("title", ""), quiz.get("points_value"))
            for quiz in lesson.get("quizzes", [])
            if quiz.get("is_published")
        )
        leaves.extend(
            LeafNode(game["id"], ReferenceType.GAME.value, game.get("title", ""))
            for game in lesson.get("games", [])
            if game.get("is_active", True)
        )
        return leaves

    async def get_points_value(self, reference_type: str, reference_id: int) -> Optional[int]:
        path = self._PATHS.get(reference_type)
        if path is None:
            return None
        payload = await self._get_json(f"/api/{path}/{reference_id}", missing_ok=True)
        if payload is None:
            return None

        try:
            value = payload.get("points_value")
            return None if value is None else int(value)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error("Malformed content node", reference_type=reference_type,
                         reference_id=reference_id, error=repr(e))
            raise PersistenceFailure("Content service returned a malformed node") from e

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None, missing_ok: bool = False):
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(url, params=params)
            if missing_ok and response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Content service request failed", url=url, error=str(e))
            raise PersistenceFailure("Content service unavailable") from e
