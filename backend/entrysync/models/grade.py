from sqlalchemy import Column, Integer, String, DateTime, Float, Text, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func

from entrysync.core.database import Base


class GradeRecord(Base):
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_grades_student_course"),
        CheckConstraint("score >= 0 AND score <= 100", name="score_range"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Business key
    student_id = Column(String(64), nullable=False)
    course_id = Column(String(64), nullable=False, index=True)

    # Grade details
    score = Column(Float, nullable=False)
    feedback = Column(Text, nullable=False, default="")

    # Provenance
    graded_by = Column(String(64), nullable=False)
    graded_at = Column(DateTime(timezone=True), nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
