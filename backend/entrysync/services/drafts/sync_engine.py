"""
Sync Engine

Pushes a scope's dirty, valid drafts to the remote store in one idempotent
batch upsert:
- snapshot the draft collection, keep dirty entries that pass the
  workflow's validity check
- map them to wire items with scope fields, actor and timestamp
- upsert keyed on the workflow's composite business key
- on success clear dirtiness for exactly the sent versions and invalidate
  cached read views; on failure leave every draft untouched

Flushes of the same scope are serialized; a flush requested while another is
running waits for it and then works from a fresh snapshot. There is no retry
loop here, a failed batch is retried by the next flush.
"""

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from entrysync.services.remote.base import RemoteStore, RemoteStoreError
from .draft_store import DraftStoreRegistry
from .identity import IdentityProvider
from .read_cache import ReadCache
from .scope import DraftScope

logger = logging.getLogger(__name__)


@dataclass
class FlushResult:
    """Outcome of one flush."""
    scope: DraftScope
    saved: int
    ids: List[int] = field(default_factory=list)
    skipped: int = 0  # dirty drafts held back as invalid (e.g. ungraded)
    duration_ms: int = 0


class SyncError(Exception):
    """A flush could not be completed; the scope's drafts are still dirty."""

    def __init__(self, message: str, scope: DraftScope, attempted: int):
        super().__init__(message)
        self.scope = scope
        self.attempted = attempted


FlushListener = Callable[[FlushResult], None]


class SyncEngine:
    """Flushes dirty drafts of any scope held by a registry."""

    def __init__(
        self,
        registry: DraftStoreRegistry,
        remote_store: RemoteStore,
        identity: IdentityProvider,
        read_cache: Optional[ReadCache] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.registry = registry
        self.remote_store = remote_store
        self.identity = identity
        self.read_cache = read_cache
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._pending: Dict[str, int] = defaultdict(int)
        self._listeners: List[FlushListener] = []

    def is_pending(self, scope: DraftScope) -> bool:
        """True while a flush of ``scope`` is running or waiting to run."""
        return self._pending.get(scope.cache_key, 0) > 0

    def on_flushed(self, listener: FlushListener) -> None:
        self._listeners.append(listener)

    async def flush(self, scope: DraftScope) -> FlushResult:
        key = scope.cache_key
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._pending[key] += 1
        try:
            async with lock:
                return await self._flush(scope)
        finally:
            self._pending[key] -= 1
            if self._pending[key] <= 0:
                del self._pending[key]

    async def _flush(self, scope: DraftScope) -> FlushResult:
        store = self.registry.store_for(scope)
        workflow = store.workflow

        snapshot = store.snapshot()
        batch = {
            student_id: draft
            for student_id, draft in snapshot.items()
            if workflow.is_syncable(draft)
        }
        skipped = sum(1 for draft in snapshot.values() if draft.is_dirty) - len(batch)

        if not batch:
            logger.debug(f"Nothing to flush for {scope.cache_key}")
            return FlushResult(scope=scope, saved=0, skipped=skipped)

        actor_id = self.identity.current_user_id()
        if not actor_id:
            raise SyncError("No acting user; drafts kept for retry", scope, len(batch))

        timestamp = self._clock()
        items = [
            workflow.to_batch_item(student_id, draft, scope, actor_id, timestamp)
            for student_id, draft in batch.items()
        ]

        start = time.monotonic()
        try:
            result = await self.remote_store.batch_upsert(
                workflow.collection, items, workflow.conflict_fields
            )
        except RemoteStoreError as e:
            logger.error(f"Flush of {len(items)} drafts for {scope.cache_key} failed: {e}")
            raise SyncError(f"Failed to save {workflow.collection}: {e}", scope, len(items)) from e

        store.mark_clean(batch)
        if self.read_cache is not None:
            self.read_cache.invalidate(scope.view_key)

        flush_result = FlushResult(
            scope=scope,
            saved=result.saved,
            ids=result.ids,
            skipped=skipped,
            duration_ms=int((time.monotonic() - start) * 1000)
        )
        logger.info(
            f"Flushed {flush_result.saved} {workflow.collection} records for {scope.cache_key} "
            f"in {flush_result.duration_ms}ms ({skipped} held back)"
        )

        for listener in list(self._listeners):
            try:
                listener(flush_result)
            except Exception as e:
                logger.warning(f"Flush listener failed for {scope.cache_key}: {e}")

        return flush_result
