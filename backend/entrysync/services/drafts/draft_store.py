"""
Draft Store

Holds one scope's draft collection in memory and mirrors it to durable
storage on every mutation (write-through). Dirty state is recomputed from the
records on each read.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, TypeAdapter, ValidationError

from .scope import DraftScope
from .storage import DraftStorage
from .workflows import DraftWorkflow, workflow_for

logger = logging.getLogger(__name__)

DirtyCountListener = Callable[[int], None]


class DraftStore:
    """Draft collection for a single scope."""

    def __init__(self, scope: DraftScope, storage: DraftStorage, workflow: Optional[DraftWorkflow] = None):
        self.scope = scope
        self.storage = storage
        self.workflow = workflow or workflow_for(scope)
        self._drafts: Dict[str, BaseModel] = {}
        self._listeners: List[DirtyCountListener] = []
        self._adapter = TypeAdapter(Dict[str, self.workflow.draft_model])

    @property
    def cache_key(self) -> str:
        return self.scope.cache_key

    def load(self) -> None:
        """Hydrate from durable storage. Unreadable data yields an empty collection."""
        before = self.dirty_count()
        drafts: Dict[str, BaseModel] = {}
        try:
            blob = self.storage.get(self.cache_key)
            if blob:
                drafts = dict(self._adapter.validate_json(blob))
        except (ValidationError, OSError) as e:
            logger.warning(f"Discarding unreadable drafts for {self.cache_key}: {e}")
            drafts = {}

        self._drafts = drafts
        logger.debug(f"Loaded {len(drafts)} drafts for {self.cache_key}")
        self._notify_if_changed(before)

    def get(self, student_id: str) -> Optional[BaseModel]:
        return self._drafts.get(student_id)

    def get_or_default(self, student_id: str) -> BaseModel:
        return self._drafts.get(student_id) or self.workflow.default_draft()

    def mutate(self, student_id: str, **updates) -> BaseModel:
        """Merge ``updates`` over the student's draft and persist the collection."""
        before = self.dirty_count()
        draft = self._merge(student_id, updates)
        self._drafts[student_id] = draft
        self._persist()
        self._notify_if_changed(before)
        return draft

    def mutate_many(self, student_ids: Iterable[str], **updates) -> int:
        """Apply the same update to several students with a single durable write."""
        before = self.dirty_count()
        merged = {student_id: self._merge(student_id, updates) for student_id in student_ids}
        if not merged:
            return 0
        self._drafts.update(merged)
        self._persist()
        self._notify_if_changed(before)
        return len(merged)

    def clear(self) -> None:
        """Drop every draft of the scope, including the durable copy."""
        before = self.dirty_count()
        self._drafts = {}
        self.storage.remove(self.cache_key)
        logger.info(f"Cleared drafts for {self.cache_key}")
        self._notify_if_changed(before)

    def snapshot(self) -> Dict[str, BaseModel]:
        return dict(self._drafts)

    def dirty_count(self) -> int:
        return sum(1 for draft in self._drafts.values() if draft.is_dirty)

    def dirty_keys(self) -> List[str]:
        return [student_id for student_id, draft in self._drafts.items() if draft.is_dirty]

    def mark_clean(self, sent: Dict[str, BaseModel]) -> int:
        """Clear ``is_dirty`` for drafts that still equal the version that was sent.

        Drafts edited (or cleared) after the snapshot keep their current state so
        the next flush picks them up.
        """
        before = self.dirty_count()
        cleaned = 0
        for student_id, sent_draft in sent.items():
            current = self._drafts.get(student_id)
            if current is None or current != sent_draft or not current.is_dirty:
                continue
            self._drafts[student_id] = current.model_copy(update={"is_dirty": False})
            cleaned += 1

        if cleaned:
            self._persist()
        self._notify_if_changed(before)
        return cleaned

    def subscribe(self, listener: DirtyCountListener) -> Callable[[], None]:
        """Register a dirty-count listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._drafts)

    def __contains__(self, student_id: str) -> bool:
        return student_id in self._drafts

    def _merge(self, student_id: str, updates: Dict) -> BaseModel:
        if not student_id:
            raise ValueError("student_id is required")
        model = self.workflow.draft_model
        unknown = set(updates) - set(model.model_fields)
        if unknown:
            raise ValueError(f"Unknown draft fields: {', '.join(sorted(unknown))}")
        current = self.get_or_default(student_id)
        return model.model_validate({**current.model_dump(), **updates})

    def _persist(self) -> None:
        self.storage.set(self.cache_key, self._adapter.dump_json(self._drafts, by_alias=True))

    def _notify_if_changed(self, before: int) -> None:
        after = self.dirty_count()
        if after == before:
            return
        for listener in list(self._listeners):
            try:
                listener(after)
            except Exception as e:
                logger.warning(f"Dirty-count listener failed for {self.cache_key}: {e}")


class DraftStoreRegistry:
    """One DraftStore per scope key, loaded on first use and kept afterwards."""

    def __init__(self, storage: DraftStorage):
        self.storage = storage
        self._stores: Dict[str, DraftStore] = {}

    def store_for(self, scope: DraftScope) -> DraftStore:
        store = self._stores.get(scope.cache_key)
        if store is None:
            store = DraftStore(scope, self.storage)
            store.load()
            self._stores[scope.cache_key] = store
        return store

    def __contains__(self, scope: DraftScope) -> bool:
        return scope.cache_key in self._stores
