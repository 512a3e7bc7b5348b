"""Generation history data models.

A :class:`GenerationRecord` is created once, right after a successful
generation, and never modified afterwards.  The same record lives in two
places:

- the remote table, as a snake_case row (see :meth:`GenerationRecord.to_row`)
- the local cache, as the JSON dump of the model itself

``is_current_user`` is derived from the active session every time a record
is read and is never written to either store.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UTC = timezone.utc


class Image(BaseModel):
    """One generated image.  Provider-specific extra fields are preserved."""

    model_config = ConfigDict(extra="allow", frozen=True)

    url: str
    width: int | None = None
    height: int | None = None
    content_type: str | None = None


class GenerationOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    images: list[Image] = Field(default_factory=list)
    timings: dict[str, Any] = Field(default_factory=dict)
    seed: int | None = None
    # Positionally aligned with ``images``.
    has_nsfw_concepts: list[bool] = Field(default_factory=list)


class GenerationRecord(BaseModel):
    """A completed generation.

    Attributes:
        id: Client-generated identifier, identical in every store.
        model_id: Provider identifier of the model used.
        model_name: Display label of the model used.
        prompt: Prompt sent to the provider.
        parameters: Validated parameter mapping actually sent.
        output: Images, timings, seed and NSFW flags returned.
        timestamp: Creation instant as epoch seconds.
        user_id: Owner, stamped from the session at save time.
        is_current_user: True when ``user_id`` is the active session's id.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    model_id: str
    model_name: str
    prompt: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    output: GenerationOutput = Field(default_factory=GenerationOutput)
    timestamp: float = Field(default_factory=time.time)
    user_id: str | None = None
    is_current_user: bool = Field(default=False, exclude=True)

    @classmethod
    def from_row(cls, row: dict[str, Any], current_user_id: str | None = None) -> GenerationRecord:
        """Build a record from a remote table row."""
        return cls(
            id=str(row["id"]),
            model_id=row["model_id"],
            model_name=row.get("model_name") or row["model_id"],
            prompt=row.get("prompt") or "",
            parameters=row.get("parameters") or {},
            output=row.get("output") or {},
            timestamp=_parse_created_at(row.get("created_at")),
            user_id=row.get("user_id"),
            is_current_user=current_user_id is not None and row.get("user_id") == current_user_id,
        )

    def to_row(self) -> dict[str, Any]:
        """Serialise the record as a remote table row."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "model_id": self.model_id,
            "model_name": self.model_name,
            "prompt": self.prompt,
            "parameters": self.parameters,
            "output": self.output.model_dump(mode="json"),
            "created_at": datetime.fromtimestamp(self.timestamp, UTC).isoformat(),
        }

    def for_user(self, current_user_id: str | None) -> GenerationRecord:
        """Return a copy with ``is_current_user`` derived for ``current_user_id``."""
        flag = current_user_id is not None and self.user_id == current_user_id
        if flag == self.is_current_user:
            return self
        return self.model_copy(update={"is_current_user": flag})


def _parse_created_at(value: Any) -> float:
    if value is None:
        return time.time()
    if isinstance(value, (int, float)):
        return float(value)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()
