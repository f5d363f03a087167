"""
Remote record store interface.

The store accepts idempotent batch upserts keyed by a composite business key
and answers read queries with rows validated against a schema per collection.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Type

from pydantic import BaseModel, ValidationError

from entrysync.schemas.records import (
    AttendanceBatchItem, GradeBatchItem, AttendanceRow, GradeRow, RosterStudent, UpsertResult
)

logger = logging.getLogger(__name__)

ATTENDANCE = "attendance"
GRADES = "grades"
ROSTER = "roster"

# Collection -> (item schema, required conflict key fields)
WRITE_SCHEMAS: Dict[str, Type[BaseModel]] = {
    ATTENDANCE: AttendanceBatchItem,
    GRADES: GradeBatchItem,
}

CONFLICT_KEYS: Dict[str, List[str]] = {
    ATTENDANCE: ["student_id", "course_id", "session_date"],
    GRADES: ["student_id", "course_id"],
}

ROW_SCHEMAS: Dict[str, Type[BaseModel]] = {
    ATTENDANCE: AttendanceRow,
    GRADES: GradeRow,
    ROSTER: RosterStudent,
}


class RemoteStoreError(Exception):
    """Raised when the remote store cannot complete a request."""
    pass


class BatchRejectedError(RemoteStoreError):
    """Raised when a batch is refused before being written."""

    def __init__(self, message: str, errors: Any = None):
        super().__init__(message)
        self.errors = errors


def validate_batch(
    collection: str,
    items: Sequence[Dict[str, Any]],
    conflict_fields: Sequence[str]
) -> List[BaseModel]:
    """Validate a batch against its collection's schema.

    Items missing any conflict key field are rejected as a whole; nothing in a
    rejected batch is written.
    """
    schema = WRITE_SCHEMAS.get(collection)
    if schema is None:
        raise BatchRejectedError(f"Unknown collection: {collection}")

    if list(conflict_fields) != CONFLICT_KEYS[collection]:
        raise BatchRejectedError(
            f"Conflict target for {collection} must be {CONFLICT_KEYS[collection]}, got {list(conflict_fields)}"
        )

    validated = []
    for index, item in enumerate(items):
        missing = [field for field in conflict_fields if not item.get(field)]
        if missing:
            raise BatchRejectedError(
                f"Item {index} is missing key fields: {', '.join(missing)}",
                errors=[{"index": index, "missing": missing}]
            )
        try:
            validated.append(schema.model_validate(item))
        except ValidationError as e:
            raise BatchRejectedError(f"Item {index} is invalid", errors=e.errors()) from e

    return validated


def parse_rows(collection: str, rows: Sequence[Any]) -> List[BaseModel]:
    """Validate raw rows (dicts or ORM objects) into the collection's row schema."""
    schema = ROW_SCHEMAS.get(collection)
    if schema is None:
        raise RemoteStoreError(f"Unknown collection: {collection}")

    try:
        return [schema.model_validate(row) for row in rows]
    except ValidationError as e:
        logger.error(f"Malformed {collection} rows from remote store: {e}")
        raise RemoteStoreError(f"Malformed {collection} rows") from e


class RemoteStore(ABC):
    """Remote store collaborator used by the sync engine and read views."""

    @abstractmethod
    async def batch_upsert(
        self,
        collection: str,
        items: List[Dict[str, Any]],
        conflict_fields: List[str]
    ) -> UpsertResult:
        """Insert or replace ``items`` keyed on ``conflict_fields``."""

    @abstractmethod
    async def query(self, collection: str, **filters: Any) -> List[BaseModel]:
        """Return validated rows of ``collection`` matching ``filters``."""

    async def close(self):
        pass
