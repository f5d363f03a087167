import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from entrysync.schemas.records import SESSION_DATE_PATTERN

ATTENDANCE_WORKFLOW = "attendance"
GRADE_WORKFLOW = "grade-entry"


@dataclass(frozen=True)
class DraftScope:
    """Partition of draft collections: (course[, session date]) per workflow."""
    workflow: str
    course_id: str
    session_date: Optional[str] = None

    def __post_init__(self):
        if not self.course_id:
            raise ValueError("course_id is required")
        if self.workflow == ATTENDANCE_WORKFLOW and not self.session_date:
            raise ValueError("attendance scopes need a session date")
        if self.workflow == GRADE_WORKFLOW and self.session_date is not None:
            raise ValueError("grade scopes are not dated")
        if self.session_date is not None:
            _check_session_date(self.session_date)

    @property
    def cache_key(self) -> str:
        """Durable storage key, e.g. ``attendance-c1-2024-02-01``."""
        parts = [self.workflow, self.course_id]
        if self.session_date:
            parts.append(self.session_date)
        return "-".join(parts)

    @property
    def view_key(self) -> Tuple[str, ...]:
        """Key of the cached read views that a flush of this scope invalidates."""
        if self.workflow == ATTENDANCE_WORKFLOW:
            return ("attendance", self.course_id, self.session_date)
        return ("grades", self.course_id)


def _check_session_date(session_date: str) -> None:
    if not isinstance(session_date, str) or not re.fullmatch(SESSION_DATE_PATTERN, session_date):
        raise ValueError(f"session date must be YYYY-MM-DD, got {session_date!r}")
    try:
        date.fromisoformat(session_date)
    except ValueError:
        raise ValueError(f"not a calendar date: {session_date}")


def attendance_scope(course_id: str, session_date: Optional[str] = None) -> DraftScope:
    return DraftScope(ATTENDANCE_WORKFLOW, course_id, session_date or date.today().isoformat())


def grade_scope(course_id: str) -> DraftScope:
    return DraftScope(GRADE_WORKFLOW, course_id)
