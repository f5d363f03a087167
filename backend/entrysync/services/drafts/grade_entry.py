"""
Grade entry for a course roster, driven from the keyboard.

Each roster row has a score field and a feedback field:
- Tab on score moves to the same row's feedback
- Tab on feedback moves to the next row's score (stays put on the last row)
- Shift+Tab moves to the previous row's score (stays put on the first row)
- Enter moves to the next row's score from either field
- Ctrl/Cmd+S saves immediately, whatever the dirty count
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from entrysync.schemas.drafts import GradeDraft
from entrysync.schemas.records import GradeRow, TEXT_MAX_LENGTH
from .entry import EntryController
from .scope import grade_scope
from .sync_engine import FlushResult

logger = logging.getLogger(__name__)

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class EntryField(str, Enum):
    SCORE = "score"
    FEEDBACK = "feedback"


@dataclass(frozen=True)
class FocusPosition:
    row_index: int
    field: EntryField


@dataclass
class KeyResult:
    handled: bool
    focus: Optional[FocusPosition]
    flush_result: Optional[FlushResult] = None


def parse_score(raw: Union[str, int, float, None]) -> Tuple[bool, Optional[float]]:
    """Parse score input. Returns ``(accepted, score)``; empty input is ungraded."""
    if raw is None:
        return True, None
    if isinstance(raw, bool):
        return False, None
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return True, None
    try:
        score = float(raw)
    except (TypeError, ValueError):
        return False, None
    if math.isnan(score) or not MIN_SCORE <= score <= MAX_SCORE:
        return False, None
    return True, score


class GradeEntryController(EntryController):

    def __init__(self, course_id: str, **kwargs):
        super().__init__(grade_scope(course_id), **kwargs)
        self.current_row_index = 0
        self.current_field = EntryField.SCORE

    @property
    def student_count(self) -> int:
        return len(self.roster)

    @property
    def focus_position(self) -> Optional[FocusPosition]:
        if not self.roster:
            return None
        return FocusPosition(self.current_row_index, self.current_field)

    @property
    def graded_count(self) -> int:
        return sum(1 for draft in self.store.snapshot().values() if draft.score is not None)

    def switch_course(self, course_id: str) -> None:
        self.switch_scope(grade_scope(course_id))
        self.current_row_index = 0
        self.current_field = EntryField.SCORE

    def set_roster(self, students) -> None:
        super().set_roster(students)
        if not self.roster:
            self.current_row_index = 0
        else:
            self.current_row_index = min(self.current_row_index, len(self.roster) - 1)

    def set_score(self, student_id: str, raw) -> bool:
        """Apply score input; out-of-range or non-numeric input is dropped."""
        accepted, score = parse_score(raw)
        if not accepted:
            logger.debug(f"Rejected score {raw!r} for {student_id}")
            return False
        self.store.mutate(student_id, score=score, is_dirty=True)
        return True

    def set_feedback(self, student_id: str, feedback: str) -> Optional[GradeDraft]:
        feedback = feedback or ""
        if len(feedback) > TEXT_MAX_LENGTH:
            logger.debug(f"Rejected {len(feedback)}-character feedback for {student_id}")
            return None
        return self.store.mutate(student_id, feedback=feedback, is_dirty=True)

    def focus(self, row_index: int, field: EntryField = EntryField.SCORE) -> FocusPosition:
        if not 0 <= row_index < self.student_count:
            raise ValueError(f"Row {row_index} is outside the roster")
        self.current_row_index = row_index
        self.current_field = EntryField(field)
        return self.focus_position

    async def handle_key(self, key: str, shift: bool = False, ctrl: bool = False, meta: bool = False) -> KeyResult:
        if key.lower() == "s" and (ctrl or meta):
            flush_result = await self.save()
            return KeyResult(True, self.focus_position, flush_result)

        if not self.roster:
            return KeyResult(False, None)

        last_row = self.student_count - 1
        if key == "Tab":
            if shift:
                if self.current_row_index > 0:
                    self._move_to(self.current_row_index - 1, EntryField.SCORE)
            elif self.current_field == EntryField.SCORE:
                self.current_field = EntryField.FEEDBACK
            elif self.current_row_index < last_row:
                self._move_to(self.current_row_index + 1, EntryField.SCORE)
            return KeyResult(True, self.focus_position)

        if key == "Enter":
            if self.current_row_index < last_row:
                self._move_to(self.current_row_index + 1, EntryField.SCORE)
            return KeyResult(True, self.focus_position)

        return KeyResult(False, self.focus_position)

    def _move_to(self, row_index: int, field: EntryField) -> None:
        self.current_row_index = row_index
        self.current_field = field

    def _draft_from_row(self, row: GradeRow) -> GradeDraft:
        return GradeDraft(score=row.score, feedback=row.feedback, is_dirty=False)
