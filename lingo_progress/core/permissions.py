"""Roles and the progress-visibility predicate."""

from enum import Enum
from typing import Optional

import structlog

from lingo_progress.core.exceptions import Forbidden

logger = structlog.get_logger()


class Role(str, Enum):
    """Closed set of caller roles."""
    LEARNER = "learner"
    TEACHER = "teacher"
    CONTENT_CREATOR = "content-creator"
    PARENT = "parent"
    ADMINISTRATOR = "administrator"


# Platform role names as issued in session tokens
_ROLE_ALIASES = {
    "student": Role.LEARNER,
    "member": Role.LEARNER,
    "super_admin": Role.ADMINISTRATOR,
    "institution_admin": Role.ADMINISTRATOR,
    "admin": Role.ADMINISTRATOR,
    "content_creator": Role.CONTENT_CREATOR,
}

PROGRESS_VIEWER_ROLES = frozenset({
    Role.ADMINISTRATOR,
    Role.TEACHER,
    Role.CONTENT_CREATOR,
    Role.PARENT,
})


def normalize_role(raw: Optional[str]) -> Role:
    """Map a token role claim onto the closed role set.

    Unknown or missing claims get the least privileged role.
    """
    if not raw:
        return Role.LEARNER
    value = raw.strip().lower()
    if value in _ROLE_ALIASES:
        return _ROLE_ALIASES[value]
    try:
        return Role(value)
    except ValueError:
        return Role.LEARNER


def can_view_progress(caller_role: Role, caller_id: int, target_learner_id: int) -> bool:
    return caller_id == target_learner_id or caller_role in PROGRESS_VIEWER_ROLES


def ensure_can_view_progress(caller_role: Role, caller_id: int, target_learner_id: int) -> None:
    """Raise Forbidden unless the caller may see the target learner's data."""
    if not can_view_progress(caller_role, caller_id, target_learner_id):
        logger.warning(
            "Progress access denied",
            caller_id=caller_id,
            role=caller_role.value,
            learner_id=target_learner_id
        )
        raise Forbidden("Not authorized to view this learner's data")
