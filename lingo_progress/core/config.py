"""Settings, read from the environment and an optional .env file."""

from typing import Dict, List
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import json


class Settings(BaseSettings):
    """Deployment settings and the gamification policy table."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    # Application
    APP_NAME: str = "Lingo Progress Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    SERVICE_NAME: str = "lingo-progress-service"
    SERVICE_PORT: int = 8004

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_ECHO: bool = False

    # Content hierarchy source
    CONTENT_SOURCE: str = Field(default="database", pattern="^(database|service)$")
    CONTENT_SERVICE_URL: str = "http://localhost:8002"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Session tokens issued by the platform
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # Points policy table
    POINTS_COMPLETE_QUIZ: int = Field(default=10, ge=0)
    POINTS_COMPLETE_LESSON: int = Field(default=15, ge=0)
    POINTS_COMPLETE_TOPIC: int = Field(default=10, ge=0)
    POINTS_COMPLETE_GAME: int = Field(default=8, ge=0)
    POINTS_PLAY_GAME: int = Field(default=8, ge=0)
    POINTS_STUDY_VOCABULARY: int = Field(default=5, ge=0)
    POINTS_COMPLETE_VOCABULARY: int = Field(default=5, ge=0)
    POINTS_PERFECT_SCORE_BONUS: int = Field(default=20, ge=0)
    POINTS_TIME_BONUS: int = Field(default=10, ge=0)

    # Duplicate awards: allow | once | improvement
    DUPLICATE_AWARD_POLICY: str = Field(default="allow", pattern="^(allow|once|improvement)$")
    IMPROVEMENT_BONUS_RATIO: float = Field(default=0.25, ge=0.0)

    # Derived metrics
    LEVEL_BASE_POINTS: int = Field(default=100, gt=0)
    ACTIVE_WINDOW_DAYS: int = Field(default=7, gt=0)
    RECENT_ACTIVITY_DAYS: int = Field(default=7, gt=0)

    # Aggregation
    LEDGER_BATCH_SIZE: int = Field(default=500, gt=0)

    # Activity log
    ACTIVITY_LOG_ENABLED: bool = True

    # Logging
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_FORMAT: str = Field(default="json", pattern="^(json|plain)$")

    # CORS
    CORS_ORIGINS: List[str] = Field(default_factory=list)

    @field_validator("CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Prometheus /metrics
    ENABLE_METRICS: bool = True

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def points_policy(self) -> Dict[str, int]:
        """Base points per activity type, keyed by the activity's wire value."""
        return {
            "COMPLETE_QUIZ": self.POINTS_COMPLETE_QUIZ,
            "COMPLETE_LESSON": self.POINTS_COMPLETE_LESSON,
            "COMPLETE_TOPIC": self.POINTS_COMPLETE_TOPIC,
            "COMPLETE_GAME": self.POINTS_COMPLETE_GAME,
            "PLAY_GAME": self.POINTS_PLAY_GAME,
            "STUDY_VOCABULARY": self.POINTS_STUDY_VOCABULARY,
            "COMPLETE_VOCABULARY": self.POINTS_COMPLETE_VOCABULARY,
            # Only ever granted by the improvement policy
            "IMPROVEMENT_BONUS": 0,
        }


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings()


settings = get_settings()
