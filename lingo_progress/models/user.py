"""Read-only mapping of the platform's users table."""

from sqlalchemy import Column, String, Integer, DateTime

from lingo_progress.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    email = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False, default="student")
    deleted_at = Column(DateTime)
