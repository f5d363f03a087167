"""
API endpoints for batched attendance writes and attendance reads.
"""
from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List, Optional
import logging

from entrysync.api.deps import get_record_store
from entrysync.schemas.records import AttendanceBatchRequest, AttendanceRow, AttendanceStats, UpsertResult
from entrysync.services.remote.base import ATTENDANCE, RemoteStoreError, BatchRejectedError
from entrysync.services.remote.sql import SqlRemoteStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/batch", response_model=UpsertResult)
async def upsert_attendance_batch(
    batch: AttendanceBatchRequest,
    store: SqlRemoteStore = Depends(get_record_store)
):
    """Insert or replace attendance marks keyed by student, course and session date."""
    try:
        result = await store.batch_upsert(
            ATTENDANCE,
            [item.model_dump() for item in batch.items],
            batch.conflict_fields
        )
    except BatchRejectedError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except RemoteStoreError as e:
        logger.error(f"Attendance batch failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Attendance save failed: {str(e)}"
        )

    logger.info(f"Saved {result.saved} attendance records")
    return result


@router.get("", response_model=List[AttendanceRow])
async def list_attendance(
    course_id: str = Query(..., min_length=1),
    session_date: Optional[str] = Query(None),
    student_id: Optional[str] = Query(None),
    store: SqlRemoteStore = Depends(get_record_store)
):
    """Attendance for a course, optionally narrowed to a session or a student's history."""
    try:
        return await store.query(
            ATTENDANCE,
            course_id=course_id,
            session_date=session_date,
            student_id=student_id
        )
    except RemoteStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch attendance: {str(e)}"
        )


@router.get("/stats", response_model=AttendanceStats)
async def attendance_stats(
    course_id: str = Query(..., min_length=1),
    store: SqlRemoteStore = Depends(get_record_store)
):
    try:
        return await store.attendance_stats(course_id)
    except RemoteStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch attendance stats: {str(e)}"
        )
