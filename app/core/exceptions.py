from typing import List, Optional


class RankingError(Exception):
    """Base class for result ranking errors."""


class ResultValidationError(RankingError):
    def __init__(self, missing_fields: List[str] = None, message: str = None):
        self.missing_fields = missing_fields or []
        if message is None:
            message = "Missing required fields: " + ", ".join(self.missing_fields)
        super().__init__(message)


class ResultNotFound(RankingError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Student result {key} not found")


class PersistenceFailure(RankingError):
    """A read or write against the result store failed.

    ``written`` lists the ids stored successfully before the failure and
    ``failed`` the ids whose write did not go through, so a retry can be
    targeted at what is missing. Nothing already written is rolled back.
    """

    def __init__(self, message: str, written: Optional[List[str]] = None, failed: Optional[List[str]] = None):
        self.written = list(written or [])
        self.failed = list(failed or [])
        super().__init__(message)

    def to_dict(self):
        return {"message": str(self), "written": self.written, "failed": self.failed}


class ConcurrentRankConflict(RankingError):
    """Stored record changed between read and write; retry the whole save."""


class ResultAccessDenied(RankingError):
    """A teacher tried to touch a result outside their own class and section."""
