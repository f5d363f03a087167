"""
SQL-backed remote store.

Writes use a single ``INSERT ... ON CONFLICT DO UPDATE`` per batch so that
re-sending the same business key replaces the stored value instead of adding
a row. Supported dialects: SQLite and PostgreSQL.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.dialects import postgresql, sqlite
from pydantic import BaseModel

from entrysync.core.database import Database
from entrysync.models.attendance import AttendanceRecord, AttendanceStatus
from entrysync.models.grade import GradeRecord
from entrysync.models.roster import Student, Enrollment
from entrysync.schemas.records import AttendanceStats, UpsertResult
from .base import (
    RemoteStore, RemoteStoreError, validate_batch, parse_rows,
    ATTENDANCE, GRADES, ROSTER
)

logger = logging.getLogger(__name__)

MODELS = {
    ATTENDANCE: AttendanceRecord,
    GRADES: GradeRecord,
}

QUERY_FILTERS = {
    ATTENDANCE: {"course_id", "session_date", "student_id"},
    GRADES: {"course_id", "student_id"},
    ROSTER: {"course_id"},
}

INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def dedupe_by_key(rows: List[Dict[str, Any]], key_fields: List[str]) -> List[Dict[str, Any]]:
    """Keep the last row per business key, preserving first-seen order."""
    latest: Dict[tuple, Dict[str, Any]] = {}
    for row in rows:
        latest[tuple(row[field] for field in key_fields)] = row
    return list(latest.values())


class SqlRemoteStore(RemoteStore):
    """Remote store over an async SQLAlchemy database."""

    def __init__(self, database: Database):
        self.database = database
        dialect = database.engine.dialect.name
        self._insert = INSERT_BY_DIALECT.get(dialect)
        if self._insert is None:
            raise RemoteStoreError(f"Upserts are not supported on dialect '{dialect}'")

    async def batch_upsert(
        self,
        collection: str,
        items: List[Dict[str, Any]],
        conflict_fields: List[str]
    ) -> UpsertResult:
        validated = validate_batch(collection, items, conflict_fields)
        if not validated:
            return UpsertResult(saved=0, ids=[])

        model = MODELS[collection]
        rows = dedupe_by_key([item.model_dump() for item in validated], conflict_fields)
        if len(rows) < len(validated):
            logger.info(f"Collapsed {len(validated) - len(rows)} duplicate {collection} items in batch")

        stmt = self._insert(model).values(rows)
        update_columns = {
            column: stmt.excluded[column]
            for column in rows[0]
            if column not in conflict_fields
        }
        update_columns["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            index_elements=conflict_fields,
            set_=update_columns
        ).returning(model.id)

        async with self.database.session_factory() as session:
            try:
                result = await session.execute(stmt)
                ids = list(result.scalars().all())
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Batch upsert into {collection} failed: {e}")
                raise RemoteStoreError(f"Failed to save {collection}: {e}") from e

        logger.info(f"Upserted {len(ids)} {collection} records")
        return UpsertResult(saved=len(ids), ids=ids)

    async def query(self, collection: str, **filters: Any) -> List[BaseModel]:
        allowed = QUERY_FILTERS.get(collection)
        if allowed is None:
            raise RemoteStoreError(f"Unknown collection: {collection}")
        unknown = set(filters) - allowed
        if unknown:
            raise RemoteStoreError(f"Unsupported filters for {collection}: {', '.join(sorted(unknown))}")
        if not filters.get("course_id"):
            raise RemoteStoreError("course_id is required")

        if collection == ROSTER:
            stmt = (
                select(Student)
                .join(Enrollment, Enrollment.student_id == Student.id)
                .where(Enrollment.course_id == filters["course_id"])
                .order_by(Enrollment.position, Student.full_name)
            )
        else:
            model = MODELS[collection]
            stmt = select(model)
            for field, value in filters.items():
                if value is not None:
                    stmt = stmt.where(getattr(model, field) == value)
            if collection == ATTENDANCE:
                stmt = stmt.order_by(model.session_date.desc(), model.student_id)
            else:
                stmt = stmt.order_by(model.student_id)

        async with self.database.session_factory() as session:
            try:
                result = await session.execute(stmt)
                records = result.scalars().all()
            except SQLAlchemyError as e:
                logger.error(f"Query on {collection} failed: {e}")
                raise RemoteStoreError(f"Failed to fetch {collection}: {e}") from e

        return parse_rows(collection, records)

    async def attendance_stats(self, course_id: str) -> AttendanceStats:
        """Count attendance records by status across every session of a course."""
        stmt = (
            select(AttendanceRecord.status, func.count(AttendanceRecord.id))
            .where(AttendanceRecord.course_id == course_id)
            .group_by(AttendanceRecord.status)
        )
        async with self.database.session_factory() as session:
            try:
                result = await session.execute(stmt)
                counts = {status: count for status, count in result.all()}
            except SQLAlchemyError as e:
                raise RemoteStoreError(f"Failed to fetch attendance stats: {e}") from e

        return AttendanceStats(
            course_id=course_id,
            total_records=sum(counts.values()),
            present=counts.get(AttendanceStatus.PRESENT, 0),
            absent=counts.get(AttendanceStatus.ABSENT, 0),
            late=counts.get(AttendanceStatus.LATE, 0),
            excused=counts.get(AttendanceStatus.EXCUSED, 0),
        )

    async def delete_grades(self, grade_ids: List[int]) -> int:
        if not grade_ids:
            return 0

        async with self.database.session_factory() as session:
            try:
                result = await session.execute(
                    delete(GradeRecord).where(GradeRecord.id.in_(grade_ids))
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RemoteStoreError(f"Failed to delete grades: {e}") from e

        logger.info(f"Deleted {result.rowcount} grades")
        return result.rowcount

    async def enroll(self, course_id: str, students: List[Dict[str, Any]]) -> int:
        """Create students as needed and enroll them in roster order."""
        async with self.database.session_factory() as session:
            try:
                for position, data in enumerate(students):
                    student: Optional[Student] = await session.get(Student, data["id"])
                    if student is None:
                        session.add(Student(id=data["id"], full_name=data["full_name"], email=data.get("email")))
                    existing = await session.execute(
                        select(Enrollment).where(
                            Enrollment.course_id == course_id,
                            Enrollment.student_id == data["id"]
                        )
                    )
                    enrollment = existing.scalar_one_or_none()
                    if enrollment is None:
                        session.add(Enrollment(student_id=data["id"], course_id=course_id, position=position))
                    else:
                        enrollment.position = position
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise RemoteStoreError(f"Failed to enroll students: {e}") from e

        return len(students)
