"""
Attendance entry for one course session: per-student marks, bulk marks over
the search-filtered roster, and an explicit clear.
"""

import logging
from typing import Dict, Iterable, List, Optional

from entrysync.models.attendance import AttendanceStatus
from entrysync.schemas.drafts import AttendanceDraft
from entrysync.schemas.records import RosterStudent, AttendanceRow, TEXT_MAX_LENGTH
from .entry import EntryController
from .scope import attendance_scope

logger = logging.getLogger(__name__)


def filter_students(students: Iterable[RosterStudent], search_term: str) -> List[RosterStudent]:
    """Case-insensitive substring match on the student's full name."""
    needle = (search_term or "").lower()
    return [student for student in students if needle in student.full_name.lower()]


class AttendanceEntryController(EntryController):

    def __init__(self, course_id: str, session_date: Optional[str] = None, **kwargs):
        super().__init__(attendance_scope(course_id, session_date), **kwargs)
        self.search_term = ""

    @property
    def session_date(self) -> str:
        return self.scope.session_date

    def switch_session(self, course_id: str, session_date: Optional[str] = None) -> None:
        self.switch_scope(attendance_scope(course_id, session_date))

    def visible_students(self) -> List[RosterStudent]:
        return filter_students(self.roster, self.search_term)

    def mark(self, student_id: str, status) -> Optional[AttendanceDraft]:
        try:
            status = AttendanceStatus(status)
        except ValueError:
            logger.debug(f"Ignoring unknown attendance status {status!r} for {student_id}")
            return None
        return self.store.mutate(student_id, status=status, is_dirty=True)

    def set_notes(self, student_id: str, notes: str) -> Optional[AttendanceDraft]:
        """Apply notes input; text longer than the stored limit is dropped."""
        notes = notes or ""
        if len(notes) > TEXT_MAX_LENGTH:
            logger.debug(f"Rejected {len(notes)}-character notes for {student_id}")
            return None
        return self.store.mutate(student_id, notes=notes, is_dirty=True)

    def mark_all_present(self) -> int:
        return self._mark_visible(AttendanceStatus.PRESENT, dirty=True)

    def mark_all_absent(self) -> int:
        return self._mark_visible(AttendanceStatus.ABSENT, dirty=True)

    def clear_all_marks(self) -> int:
        """Reset visible students to the unmarked default without deleting their drafts."""
        return self._mark_visible(AttendanceStatus.PRESENT, dirty=False)

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in AttendanceStatus}
        for draft in self.store.snapshot().values():
            counts[draft.status.value] += 1
        return counts

    def _mark_visible(self, status: AttendanceStatus, dirty: bool) -> int:
        student_ids = [student.id for student in self.visible_students()]
        return self.store.mutate_many(student_ids, status=status, is_dirty=dirty)

    def _draft_from_row(self, row: AttendanceRow) -> AttendanceDraft:
        return AttendanceDraft(status=row.status, notes=row.notes, is_dirty=False)
