from .attendance import AttendanceRecord, AttendanceStatus
from .grade import GradeRecord
from .roster import Student, Enrollment

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "GradeRecord",
    "Student",
    "Enrollment",
]
