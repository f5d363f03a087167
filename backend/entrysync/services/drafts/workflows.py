"""
Per-workflow draft variants: which draft model a scope holds, which drafts are
worth sending, and how a draft maps onto the remote store's wire shape.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Tuple, Type

from pydantic import BaseModel

from entrysync.schemas.drafts import AttendanceDraft, GradeDraft
from entrysync.services.remote.base import ATTENDANCE as ATTENDANCE_COLLECTION, GRADES as GRADES_COLLECTION, CONFLICT_KEYS
from .scope import DraftScope, ATTENDANCE_WORKFLOW, GRADE_WORKFLOW


@dataclass(frozen=True)
class DraftWorkflow:
    name: str
    collection: str
    draft_model: Type[BaseModel]
    payload_fields: Tuple[str, ...]
    actor_field: str
    timestamp_field: str
    is_valid: Callable[[BaseModel], bool]

    @property
    def conflict_fields(self):
        return list(CONFLICT_KEYS[self.collection])

    def default_draft(self) -> BaseModel:
        return self.draft_model()

    def is_syncable(self, draft: BaseModel) -> bool:
        return draft.is_dirty and self.is_valid(draft)

    def to_batch_item(
        self,
        student_id: str,
        draft: BaseModel,
        scope: DraftScope,
        actor_id: str,
        timestamp: datetime
    ) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "student_id": student_id,
            "course_id": scope.course_id,
        }
        if scope.session_date is not None:
            item["session_date"] = scope.session_date
        item.update(draft.model_dump(mode="json", include=set(self.payload_fields)))
        item[self.actor_field] = actor_id
        item[self.timestamp_field] = timestamp.isoformat()
        return item


ATTENDANCE = DraftWorkflow(
    name=ATTENDANCE_WORKFLOW,
    collection=ATTENDANCE_COLLECTION,
    draft_model=AttendanceDraft,
    payload_fields=("status", "notes"),
    actor_field="recorded_by",
    timestamp_field="recorded_at",
    # status always carries a value
    is_valid=lambda draft: True,
)

GRADES = DraftWorkflow(
    name=GRADE_WORKFLOW,
    collection=GRADES_COLLECTION,
    draft_model=GradeDraft,
    payload_fields=("score", "feedback"),
    actor_field="graded_by",
    timestamp_field="graded_at",
    is_valid=lambda draft: draft.score is not None,
)

WORKFLOWS: Dict[str, DraftWorkflow] = {
    ATTENDANCE.name: ATTENDANCE,
    GRADES.name: GRADES,
}


def workflow_for(scope: DraftScope) -> DraftWorkflow:
    try:
        return WORKFLOWS[scope.workflow]
    except KeyError:
        raise ValueError(f"Unknown workflow: {scope.workflow}")
