"""
Local-first draft entry and batched synchronization

Components:
- Durable per-scope draft collections with dirty tracking
- Debounced, threshold-triggered auto-save
- Batch sync engine with idempotent upserts and per-scope serialization
- Attendance and keyboard-driven grade entry controllers
"""

from .scope import DraftScope, attendance_scope, grade_scope
from .storage import DraftStorage, MemoryDraftStorage, FileDraftStorage
from .workflows import DraftWorkflow, ATTENDANCE, GRADES, workflow_for
from .draft_store import DraftStore, DraftStoreRegistry
from .read_cache import ReadCache
from .identity import IdentityProvider, StaticIdentity
from .sync_engine import SyncEngine, SyncError, FlushResult
from .scheduler import AutoSaveScheduler
from .entry import EntryController, EntryRow
from .attendance_entry import AttendanceEntryController, filter_students
from .grade_entry import GradeEntryController, EntryField, FocusPosition, KeyResult, parse_score
from .context import EntrySyncContext

__all__ = [
    'DraftScope',
    'attendance_scope',
    'grade_scope',
    'DraftStorage',
    'MemoryDraftStorage',
    'FileDraftStorage',
    'DraftWorkflow',
    'ATTENDANCE',
    'GRADES',
    'workflow_for',
    'DraftStore',
    'DraftStoreRegistry',
    'ReadCache',
    'IdentityProvider',
    'StaticIdentity',
    'SyncEngine',
    'SyncError',
    'FlushResult',
    'AutoSaveScheduler',
    'EntryController',
    'EntryRow',
    'AttendanceEntryController',
    'filter_students',
    'GradeEntryController',
    'EntryField',
    'FocusPosition',
    'KeyResult',
    'parse_score',
    'EntrySyncContext'
]
