"""
Auto-save scheduling for one draft scope.

A save is armed when the dirty count lands on a positive multiple of the
batch threshold and fires after a debounce window; further edits inside the
window push it back. Any dirty-count change while armed restarts the window,
including changes that do not land on a multiple, so a burst of edits that
started on a qualifying count is saved as one batch. Only a count of zero
cancels an armed save. Nothing is armed while a flush of the scope is
pending, and nothing at all once the scheduler is detached.
"""

import asyncio
import logging
from typing import Optional

from .draft_store import DraftStore
from .sync_engine import SyncEngine, SyncError, FlushResult

logger = logging.getLogger(__name__)

DEFAULT_BATCH_THRESHOLD = 5
DEFAULT_DEBOUNCE_SECONDS = 2.0


class AutoSaveScheduler:
    """Decides when the sync engine runs without an explicit save."""

    def __init__(
        self,
        engine: SyncEngine,
        store: DraftStore,
        batch_threshold: int = DEFAULT_BATCH_THRESHOLD,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        enabled: bool = True
    ):
        if batch_threshold <= 0:
            raise ValueError("batch_threshold must be positive")

        self.engine = engine
        self.store = store
        self.scope = store.scope
        self.batch_threshold = batch_threshold
        self.debounce_seconds = debounce_seconds
        self._enabled = enabled
        self._detached = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self.last_result: Optional[FlushResult] = None
        self.last_error: Optional[SyncError] = None
        self._unsubscribe = store.subscribe(self.on_dirty_count_changed)

    @property
    def auto_save_enabled(self) -> bool:
        return self._enabled

    @auto_save_enabled.setter
    def auto_save_enabled(self, enabled: bool):
        self._enabled = enabled
        if enabled:
            self.on_dirty_count_changed(self.store.dirty_count())
        else:
            self._cancel_timer()

    @property
    def armed(self) -> bool:
        return self._timer is not None

    @property
    def saving(self) -> bool:
        return self.engine.is_pending(self.scope)

    def on_dirty_count_changed(self, dirty_count: int) -> None:
        if self._detached or not self._enabled or self.engine.is_pending(self.scope):
            return

        if dirty_count == 0:
            self._cancel_timer()
        elif self._timer is not None or dirty_count % self.batch_threshold == 0:
            self._arm()

    async def save_now(self) -> FlushResult:
        """Explicit save (Save all, Ctrl/Cmd+S); ignores the threshold and re-raises failures."""
        self._cancel_timer()
        try:
            result = await self.engine.flush(self.scope)
        except SyncError as e:
            self.last_error = e
            raise
        self.last_result = result
        self.last_error = None
        self.on_dirty_count_changed(self.store.dirty_count())
        return result

    async def wait_idle(self) -> None:
        """Wait for the automatic save currently running, if any."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def detach(self) -> None:
        """Stop scheduling for this scope; a save already running still completes."""
        self._detached = True
        self._cancel_timer()
        self._unsubscribe()

    async def close(self) -> None:
        self.detach()
        await self.wait_idle()

    def _arm(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._task = asyncio.ensure_future(self._auto_save())

    async def _auto_save(self) -> None:
        try:
            result = await self.engine.flush(self.scope)
        except SyncError as e:
            # Drafts stay dirty; the next qualifying edit or an explicit save retries.
            self.last_error = e
            logger.error(f"Auto-save for {self.scope.cache_key} failed: {e}")
            return

        self.last_result = result
        self.last_error = None
        self.on_dirty_count_changed(self.store.dirty_count())
