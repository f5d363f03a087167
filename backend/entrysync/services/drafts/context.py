"""
Wiring for a client session: durable storage, draft stores, read cache and
sync engine, built once at startup and closed at shutdown.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from entrysync.core.config import Settings, get_settings
from entrysync.services.remote.base import RemoteStore
from entrysync.services.remote.http import HttpRemoteStore
from .attendance_entry import AttendanceEntryController
from .draft_store import DraftStoreRegistry
from .entry import EntryController
from .grade_entry import GradeEntryController
from .identity import IdentityProvider
from .read_cache import ReadCache
from .storage import DraftStorage, FileDraftStorage
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class EntrySyncContext:
    """Owns the shared collaborators of every entry controller it hands out."""

    def __init__(
        self,
        remote_store: RemoteStore,
        identity: IdentityProvider,
        storage: Optional[DraftStorage] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings or get_settings()
        self.remote_store = remote_store
        self.identity = identity
        self.storage = storage or FileDraftStorage(self.settings.DRAFT_STORAGE_DIR)
        self.registry = DraftStoreRegistry(self.storage)
        self.read_cache = ReadCache(ttl_seconds=self.settings.READ_CACHE_TTL_SECONDS)

        engine_kwargs = {"clock": clock} if clock is not None else {}
        self.engine = SyncEngine(
            self.registry,
            remote_store,
            identity,
            read_cache=self.read_cache,
            **engine_kwargs
        )
        self._controllers: List[EntryController] = []

    @classmethod
    def over_http(cls, identity: IdentityProvider, settings: Optional[Settings] = None, **kwargs) -> "EntrySyncContext":
        settings = settings or get_settings()
        remote_store = HttpRemoteStore(
            base_url=settings.REMOTE_BASE_URL,
            timeout=settings.REMOTE_TIMEOUT_SECONDS
        )
        return cls(remote_store, identity, settings=settings, **kwargs)

    def attendance(self, course_id: str, session_date: Optional[str] = None) -> AttendanceEntryController:
        controller = AttendanceEntryController(course_id, session_date, **self._controller_kwargs())
        self._controllers.append(controller)
        return controller

    def grades(self, course_id: str) -> GradeEntryController:
        controller = GradeEntryController(course_id, **self._controller_kwargs())
        self._controllers.append(controller)
        return controller

    async def close(self) -> None:
        for controller in self._controllers:
            await controller.close()
        self._controllers.clear()
        await self.remote_store.close()
        logger.info("Entry sync context closed")

    def _controller_kwargs(self):
        return {
            "registry": self.registry,
            "engine": self.engine,
            "remote_store": self.remote_store,
            "read_cache": self.read_cache,
            "batch_threshold": self.settings.AUTOSAVE_BATCH_THRESHOLD,
            "debounce_seconds": self.settings.AUTOSAVE_DEBOUNCE_SECONDS,
        }
