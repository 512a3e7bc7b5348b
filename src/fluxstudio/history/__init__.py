"""Generation history: records, local cache, remote store and reconciliation.

Modules
-------
records
    GenerationRecord, GenerationOutput and Image models.
local_store
    File-backed key-value storage and the local history cache.
session
    Per-device user identity and the SessionContext.
remote_store
    GenerationStore interface and the Supabase implementation.
reconciler
    HistoryReconciler and merge_records.
"""

from fluxstudio.history.local_store import LocalHistoryCache, LocalStorage
from fluxstudio.history.reconciler import HistoryReconciler, merge_records
from fluxstudio.history.records import GenerationOutput, GenerationRecord, Image
from fluxstudio.history.session import SessionContext, get_or_create_user_id

__all__ = [
    "GenerationOutput",
    "GenerationRecord",
    "HistoryReconciler",
    "Image",
    "LocalHistoryCache",
    "LocalStorage",
    "SessionContext",
    "get_or_create_user_id",
    "merge_records",
]
