"""Local key-value persistence and the local history cache.

:class:`LocalStorage` is a small file-backed key-value store: every slot
lives in one JSON object on disk, read and rewritten as a whole.  It plays
the part a browser's local storage would play for a single device.

:class:`LocalHistoryCache` keeps the serialised list of generation records
in the ``fal-ai-generations`` slot.  It is a best-effort mirror of the
remote store and the fallback when the remote store is unreachable; it is
never authoritative while the remote store answers.

Reads are intentionally forgiving:

- if the file is missing or invalid, every slot reads as its default
- if the history slot holds something other than a list, it reads as empty
- entries that no longer parse as records are skipped

Writes that fail are logged and otherwise ignored, because losing the
offline mirror must never break generation.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .records import GenerationRecord

logger = logging.getLogger(__name__)

GENERATIONS_STORAGE_KEY = "fal-ai-generations"


class LocalStorage:
    """JSON file holding named slots.

    Args:
        path: Location of the JSON file.  Parent directories are created on
            first write.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read local storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class LocalHistoryCache:
    """Generation records stored in one local storage slot, newest first.

    Args:
        storage: Backing key-value store.
        key: Slot name.
    """

    def __init__(self, storage: LocalStorage, key: str = GENERATIONS_STORAGE_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> list[GenerationRecord]:
        """Return every cached record in stored order."""
        raw_entries = self.storage.get(self.key, [])
        if not isinstance(raw_entries, list):
            return []

        records: list[GenerationRecord] = []
        for entry in raw_entries:
            try:
                records.append(GenerationRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable cached generation: {e.error_count()} error(s)")
        return records

    def replace(self, records: list[GenerationRecord]) -> None:
        """Overwrite the cache with ``records``."""
        try:
            self.storage.set(self.key, [r.model_dump(mode="json") for r in records])
        except OSError as e:
            logger.error(f"Failed to write local generation cache: {e}")

    def prepend(self, record: GenerationRecord) -> None:
        """Insert ``record`` at the front, replacing any entry with the same id."""
        remaining = [r for r in self.load() if r.id != record.id]
        self.replace([record, *remaining])

    def remove(self, record_id: str) -> None:
        self.replace([r for r in self.load() if r.id != record_id])

    def clear(self) -> None:
        self.replace([])
