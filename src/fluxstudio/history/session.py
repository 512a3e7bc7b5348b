"""Session identity and the context passed through history operations."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from .local_store import LocalHistoryCache, LocalStorage

logger = logging.getLogger(__name__)

USER_ID_STORAGE_KEY = "fal-ai-user-id"


def get_or_create_user_id(storage: LocalStorage) -> str:
    """Return the device's user id, creating and persisting one if absent.

    Args:
        storage: Local key-value store holding the ``fal-ai-user-id`` slot.

    Returns:
        Stable per-device user identifier (a UUID4 string).
    """
    user_id = storage.get(USER_ID_STORAGE_KEY)
    if isinstance(user_id, str) and user_id:
        return user_id

    user_id = str(uuid.uuid4())
    storage.set(USER_ID_STORAGE_KEY, user_id)
    logger.info(f"Created new session user id {user_id}")
    return user_id


@dataclass(frozen=True)
class SessionContext:
    """Active identity plus the local cache it owns.

    Every reconciler operation receives one of these explicitly, so tests can
    build a context around a temporary file instead of patching globals.
    """

    user_id: str
    cache: LocalHistoryCache

    @classmethod
    def from_storage(cls, storage: LocalStorage) -> SessionContext:
        return cls(user_id=get_or_create_user_id(storage), cache=LocalHistoryCache(storage))

    def owns(self, user_id: str | None) -> bool:
        return user_id == self.user_id
