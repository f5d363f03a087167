"""
Pydantic schemas for locally held drafts.

Drafts are serialized in object form under their camelCase ``isDirty`` alias,
e.g. ``{"s1": {"status": "present", "notes": "", "isDirty": true}}``.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from entrysync.models.attendance import AttendanceStatus
from entrysync.schemas.records import TEXT_MAX_LENGTH


class AttendanceDraft(BaseModel):
    """One student's attendance mark for a session."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    status: AttendanceStatus = AttendanceStatus.PRESENT
    notes: str = Field(default="", max_length=TEXT_MAX_LENGTH)
    is_dirty: bool = Field(default=False, alias="isDirty")


class GradeDraft(BaseModel):
    """One student's grade for a course. ``score=None`` means ungraded."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    score: Optional[float] = Field(default=None, ge=0, le=100)
    feedback: str = Field(default="", max_length=TEXT_MAX_LENGTH)
    is_dirty: bool = Field(default=False, alias="isDirty")
