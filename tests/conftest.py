import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused.db")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_FORMAT", "plain")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENABLE_METRICS", "false")

from datetime import datetime

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from lingo_progress.content.hierarchy import DatabaseContentProvider
from lingo_progress.core.database import Base, get_db
from lingo_progress.core.dependencies import create_access_token
from lingo_progress.models import Course, Game, Lesson, PointAward, Quiz, Topic, User

LEARNER_ID = 1
OTHER_LEARNER_ID = 2
TEACHER_ID = 3
PARENT_ID = 4
DELETED_ID = 9


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def broken_db(tmp_path):
    """Session on a database with no tables, so every statement fails."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def content(db):
    return DatabaseContentProvider(db)


@pytest.fixture
async def catalog(db):
    """Users plus a small published/unpublished content tree.

    French A1 (course 1) has five published leaves: topic 100, quiz 42,
    game 7 in lesson 10 and topic 102, quiz 44 (via its topic) in lesson 13.
    Lesson 11 has no leaves. German A1 (course 2) has no leaves at all.
    """
    db.add_all([
        User(id=LEARNER_ID, email="learner@example.com", role="student"),
        User(id=OTHER_LEARNER_ID, email="other@example.com", role="student"),
        User(id=TEACHER_ID, email="teacher@example.com", role="teacher"),
        User(id=PARENT_ID, email="parent@example.com", role="parent"),
        User(id=DELETED_ID, email="gone@example.com", role="student", deleted_at=datetime(2024, 1, 1)),

        Course(id=1, title="French A1", language="french", is_published=True),
        Course(id=2, title="German A1", language="german", is_published=True, course_order=1),
        Course(id=3, title="Spanish draft", language="spanish", is_published=False),

        Lesson(id=10, course_id=1, title="Greetings", lesson_order=1, is_published=True),
        Lesson(id=11, course_id=1, title="Culture", lesson_order=2, is_published=True),
        Lesson(id=12, course_id=1, title="Draft", lesson_order=3, is_published=False),
        Lesson(id=13, course_id=1, title="Numbers", lesson_order=4, is_published=True),
        Lesson(id=20, course_id=2, title="Hallo", is_published=True),
        Lesson(id=30, course_id=3, title="Hola", is_published=True),

        Topic(id=100, lesson_id=10, title="Bonjour", points_value=10, is_published=True),
        Topic(id=101, lesson_id=12, title="Hidden", points_value=10, is_published=True),
        Topic(id=102, lesson_id=13, title="Un deux trois", points_value=12, is_published=True),
        Topic(id=300, lesson_id=30, title="Buenos dias", is_published=True),

        Quiz(id=42, lesson_id=10, title="Greetings quiz", points_value=15, is_published=True),
        Quiz(id=43, lesson_id=10, title="Unpublished quiz", points_value=15, is_published=False),
        Quiz(id=44, lesson_id=None, topic_id=102, title="Numbers quiz", points_value=20, is_published=True),

        Game(id=7, lesson_id=10, title="Memory", is_active=True),
        Game(id=8, lesson_id=10, title="Retired", is_active=False),
    ])
    await db.commit()


async def ledger_rows(db, learner_id=LEARNER_ID):
    result = await db.execute(
        select(PointAward).where(PointAward.learner_id == learner_id).order_by(PointAward.id)
    )
    return list(result.scalars().all())


def auth_headers(user_id, role="student"):
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, catalog):
    from lingo_progress.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
