"""
Shared plumbing of the entry workflows: the active scope's draft store and
auto-save scheduler, the roster, explicit saves and merged read views.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel

from entrysync.schemas.records import RosterStudent
from entrysync.services.remote.base import RemoteStore, ROSTER
from .draft_store import DraftStore, DraftStoreRegistry
from .read_cache import ReadCache
from .scheduler import AutoSaveScheduler, DEFAULT_BATCH_THRESHOLD, DEFAULT_DEBOUNCE_SECONDS
from .scope import DraftScope
from .sync_engine import SyncEngine, FlushResult

logger = logging.getLogger(__name__)


@dataclass
class EntryRow:
    """One roster row as displayed: the student and the values to show."""
    student: RosterStudent
    draft: BaseModel
    source: str  # "draft", "remote" or "default"

    @property
    def is_dirty(self) -> bool:
        return self.draft.is_dirty


class EntryController(ABC):
    """Base for the attendance and grade entry controllers."""

    def __init__(
        self,
        scope: DraftScope,
        registry: DraftStoreRegistry,
        engine: SyncEngine,
        remote_store: Optional[RemoteStore] = None,
        read_cache: Optional[ReadCache] = None,
        batch_threshold: int = DEFAULT_BATCH_THRESHOLD,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        auto_save_enabled: bool = True
    ):
        self.registry = registry
        self.engine = engine
        self.remote_store = remote_store
        # Share the engine's cache so flushes invalidate the views read here
        self.read_cache = read_cache or engine.read_cache or ReadCache()
        self.batch_threshold = batch_threshold
        self.debounce_seconds = debounce_seconds
        self.roster: List[RosterStudent] = []
        self._retired: List[AutoSaveScheduler] = []
        self.scope: DraftScope
        self.store: DraftStore
        self.scheduler: AutoSaveScheduler
        self._activate(scope, auto_save_enabled)

    def _activate(self, scope: DraftScope, auto_save_enabled: bool) -> None:
        self.scope = scope
        self.store = self.registry.store_for(scope)
        self.scheduler = AutoSaveScheduler(
            self.engine,
            self.store,
            batch_threshold=self.batch_threshold,
            debounce_seconds=self.debounce_seconds,
            enabled=auto_save_enabled
        )

    def switch_scope(self, scope: DraftScope) -> None:
        """Move to another scope. A save already running for the old scope completes."""
        if scope == self.scope:
            return
        enabled = self.scheduler.auto_save_enabled
        self.scheduler.detach()
        self._retired.append(self.scheduler)
        logger.info(f"Switching entry scope {self.scope.cache_key} -> {scope.cache_key}")
        self._activate(scope, enabled)

    @property
    def auto_save_enabled(self) -> bool:
        return self.scheduler.auto_save_enabled

    @auto_save_enabled.setter
    def auto_save_enabled(self, enabled: bool):
        self.scheduler.auto_save_enabled = enabled

    @property
    def unsaved_count(self) -> int:
        return self.store.dirty_count()

    @property
    def saving(self) -> bool:
        return self.scheduler.saving

    @property
    def last_saved_count(self) -> int:
        result = self.scheduler.last_result
        return result.saved if result is not None else 0

    def set_roster(self, students: Iterable[RosterStudent]) -> None:
        self.roster = list(students)

    def draft_for(self, student_id: str) -> BaseModel:
        return self.store.get_or_default(student_id)

    async def load_roster(self) -> List[RosterStudent]:
        remote_store = self._require_remote_store()
        course_id = self.scope.course_id
        students = await self.read_cache.get_or_fetch(
            (ROSTER, course_id),
            lambda: remote_store.query(ROSTER, course_id=course_id)
        )
        self.set_roster(students)
        return self.roster

    async def save(self) -> FlushResult:
        return await self.scheduler.save_now()

    def clear_drafts(self) -> None:
        """Forget every draft of the active scope, locally and durably."""
        self.store.clear()

    async def load_view(self) -> List[EntryRow]:
        """Rows in roster order: dirty drafts first, then confirmed remote state,
        then any clean local draft, then the default."""
        remote_store = self._require_remote_store()
        workflow = self.store.workflow
        filters = {"course_id": self.scope.course_id}
        if self.scope.session_date is not None:
            filters["session_date"] = self.scope.session_date

        rows = await self.read_cache.get_or_fetch(
            self.scope.view_key,
            lambda: remote_store.query(workflow.collection, **filters)
        )
        confirmed: Dict[str, BaseModel] = {row.student_id: row for row in rows}

        view = []
        for student in self.roster:
            draft = self.store.get(student.id)
            remote_row = confirmed.get(student.id)
            if draft is not None and draft.is_dirty:
                view.append(EntryRow(student, draft, "draft"))
            elif remote_row is not None:
                view.append(EntryRow(student, self._draft_from_row(remote_row), "remote"))
            elif draft is not None:
                view.append(EntryRow(student, draft, "draft"))
            else:
                view.append(EntryRow(student, workflow.default_draft(), "default"))
        return view

    async def close(self) -> None:
        await self.scheduler.close()
        for scheduler in self._retired:
            await scheduler.wait_idle()
        self._retired.clear()

    @abstractmethod
    def _draft_from_row(self, row: BaseModel) -> BaseModel:
        """Clean draft holding a confirmed remote row's values."""

    def _require_remote_store(self) -> RemoteStore:
        if self.remote_store is None:
            raise RuntimeError("No remote store configured for read views")
        return self.remote_store
