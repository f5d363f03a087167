"""
Pydantic schemas for the remote record store: batch items sent on the wire
and the rows returned by read queries.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional, Literal

from entrysync.models.attendance import AttendanceStatus

SESSION_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TEXT_MAX_LENGTH = 2000


class AttendanceBatchItem(BaseModel):
    """Wire form of one attendance draft."""
    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    session_date: str = Field(..., pattern=SESSION_DATE_PATTERN)
    status: AttendanceStatus
    notes: str = Field(default="", max_length=TEXT_MAX_LENGTH)
    recorded_by: str = Field(..., min_length=1)
    recorded_at: datetime


class GradeBatchItem(BaseModel):
    """Wire form of one graded draft. Ungraded drafts never reach the wire."""
    student_id: str = Field(..., min_length=1)
    course_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=100)
    feedback: str = Field(default="", max_length=TEXT_MAX_LENGTH)
    graded_by: str = Field(..., min_length=1)
    graded_at: datetime


class AttendanceBatchRequest(BaseModel):
    items: List[AttendanceBatchItem]
    conflict_fields: List[str] = ["student_id", "course_id", "session_date"]

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "items": [
                {
                    "student_id": "s-101",
                    "course_id": "c1",
                    "session_date": "2024-02-01",
                    "status": "present",
                    "notes": "",
                    "recorded_by": "t-7",
                    "recorded_at": "2024-02-01T09:05:00Z"
                }
            ],
            "conflict_fields": ["student_id", "course_id", "session_date"]
        }
    })


class GradeBatchRequest(BaseModel):
    items: List[GradeBatchItem]
    conflict_fields: List[str] = ["student_id", "course_id"]


class UpsertResult(BaseModel):
    saved: int
    ids: List[int] = []


class GradeDeleteRequest(BaseModel):
    ids: List[int]


class GradeDeleteResult(BaseModel):
    deleted: int


class AttendanceRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["attendance"] = "attendance"
    id: int
    student_id: str
    course_id: str
    session_date: str
    status: AttendanceStatus
    notes: str = ""
    recorded_by: str
    recorded_at: datetime


class GradeRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["grade"] = "grade"
    id: int
    student_id: str
    course_id: str
    score: float
    feedback: str = ""
    graded_by: str
    graded_at: datetime


class RosterStudent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: Literal["student"] = "student"
    id: str
    full_name: str
    email: Optional[str] = None


class AttendanceStats(BaseModel):
    course_id: str
    total_records: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
