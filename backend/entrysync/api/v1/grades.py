"""
API endpoints for batched grade writes, grade reads and deletes.
"""
from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List, Optional
import logging

from entrysync.api.deps import get_record_store
from entrysync.schemas.records import (
    GradeBatchRequest, GradeRow, UpsertResult, GradeDeleteRequest, GradeDeleteResult
)
from entrysync.services.remote.base import GRADES, RemoteStoreError, BatchRejectedError
from entrysync.services.remote.sql import SqlRemoteStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/batch", response_model=UpsertResult)
async def upsert_grade_batch(
    batch: GradeBatchRequest,
    store: SqlRemoteStore = Depends(get_record_store)
):
    """Insert or replace grades keyed by student and course."""
    try:
        result = await store.batch_upsert(
            GRADES,
            [item.model_dump() for item in batch.items],
            batch.conflict_fields
        )
    except BatchRejectedError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e)
        )
    except RemoteStoreError as e:
        logger.error(f"Grade batch failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Grade save failed: {str(e)}"
        )

    logger.info(f"Saved {result.saved} grades")
    return result


@router.get("", response_model=List[GradeRow])
async def list_grades(
    course_id: str = Query(..., min_length=1),
    student_id: Optional[str] = Query(None),
    store: SqlRemoteStore = Depends(get_record_store)
):
    try:
        return await store.query(GRADES, course_id=course_id, student_id=student_id)
    except RemoteStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch grades: {str(e)}"
        )


@router.post("/delete", response_model=GradeDeleteResult)
async def delete_grades(
    request: GradeDeleteRequest,
    store: SqlRemoteStore = Depends(get_record_store)
):
    try:
        deleted = await store.delete_grades(request.ids)
    except RemoteStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete grades: {str(e)}"
        )
    return GradeDeleteResult(deleted=deleted)
