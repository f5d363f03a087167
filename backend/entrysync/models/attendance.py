from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Text, UniqueConstraint, Index
from sqlalchemy.sql import func
import enum

from entrysync.core.database import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    EXCUSED = "excused"


class AttendanceRecord(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "session_date", name="uq_attendance_student_course_date"),
        Index("ix_attendance_course_date", "course_id", "session_date"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Business key
    student_id = Column(String(64), nullable=False)
    course_id = Column(String(64), nullable=False)
    session_date = Column(String(10), nullable=False)  # ISO "YYYY-MM-DD"

    # Attendance details
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)
    notes = Column(Text, nullable=False, default="")

    # Provenance
    recorded_by = Column(String(64), nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
