"""Shared dependencies for the Lingo Progress Service."""

from dataclasses import dataclass
from typing import Optional
import httpx
import structlog
from jose import jwt, JWTError
from datetime import datetime, timedelta
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from lingo_progress.content.hierarchy import ContentProvider, ContentServiceProvider, DatabaseContentProvider
from lingo_progress.core.config import settings
from lingo_progress.core.database import get_db
from lingo_progress.core.permissions import Role, normalize_role

logger = structlog.get_logger()

# Shared by every request; closed on shutdown
_http_client: Optional[httpx.AsyncClient] = None

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Caller identity resolved from the session token."""
    user_id: int
    role: Role


async def get_http_client() -> httpx.AsyncClient:
    """Client for calls to the content service."""
    global _http_client

    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS),
            headers={
                "Accept": "application/json",
                "User-Agent": f"{settings.SERVICE_NAME}/{settings.APP_VERSION}"
            }
        )

    return _http_client


async def close_http_client():
    global _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


async def get_content_provider(db: AsyncSession = Depends(get_db)) -> ContentProvider:
    """Pick the content hierarchy source configured for this deployment."""
    if settings.CONTENT_SOURCE == "service":
        return ContentServiceProvider(await get_http_client(), settings.CONTENT_SERVICE_URL)
    return DatabaseContentProvider(db)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a session token. The platform issues real ones; this serves tools and tests."""
    claims = dict(data, exp=datetime.utcnow() + (expires_delta or timedelta(minutes=60)))
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """Resolve the caller's learner id and role from the bearer token."""
    if credentials is None:
        raise _unauthorized()

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise _unauthorized()

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise _unauthorized()

    return CurrentUser(user_id=user_id, role=normalize_role(payload.get("role")))
