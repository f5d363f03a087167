"""
API endpoints for course rosters.
"""
from fastapi import APIRouter, HTTPException, Depends, status
from typing import List
import logging

from entrysync.api.deps import get_record_store
from entrysync.schemas.records import RosterStudent
from entrysync.services.remote.base import ROSTER, RemoteStoreError
from entrysync.services.remote.sql import SqlRemoteStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{course_id}/roster", response_model=List[RosterStudent])
async def course_roster(
    course_id: str,
    store: SqlRemoteStore = Depends(get_record_store)
):
    """Enrolled students in roster order."""
    try:
        return await store.query(ROSTER, course_id=course_id)
    except RemoteStoreError as e:
        logger.error(f"Roster lookup for {course_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch roster: {str(e)}"
        )
