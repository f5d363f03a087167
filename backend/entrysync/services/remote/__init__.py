"""
Remote record store: the collaborator drafts are synchronized into.
"""

from .base import (
    RemoteStore,
    RemoteStoreError,
    BatchRejectedError,
    validate_batch,
    parse_rows,
    ATTENDANCE,
    GRADES,
    ROSTER,
    CONFLICT_KEYS
)
from .sql import SqlRemoteStore
from .http import HttpRemoteStore

__all__ = [
    'RemoteStore',
    'RemoteStoreError',
    'BatchRejectedError',
    'validate_batch',
    'parse_rows',
    'ATTENDANCE',
    'GRADES',
    'ROSTER',
    'CONFLICT_KEYS',
    'SqlRemoteStore',
    'HttpRemoteStore'
]
