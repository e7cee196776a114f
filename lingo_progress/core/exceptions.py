"""Error taxonomy shared by the engines and the HTTP layer."""

from fastapi import status


class GamificationError(Exception):
    """Base class for errors reported to callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "GamificationError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidActivity(GamificationError):
    """The activity type is not in the closed set."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidActivity"


class InvalidReference(GamificationError):
    """The reference id/type pair is incomplete or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidReference"


class Forbidden(GamificationError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "Forbidden"


class LearnerNotFound(GamificationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "LearnerNotFound"


class PersistenceFailure(GamificationError):
    """A storage read or write failed. Never retried here."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "PersistenceFailure"
