"""History Reconciler: remote-first generation history with a local mirror.

The remote store is the source of truth; the local cache is a mirror and an
offline buffer.  Every operation receives a :class:`SessionContext` holding
the active user id and the cache it owns.

Operations
----------
save
    Remote insert first.  On success the record is mirrored into the cache;
    on failure it is written to the cache only and still shows up in later
    fetches from this device.
fetch
    Remote select (newest first, limited).  A failed or empty remote read
    falls back to the cache.  Otherwise the remote rows are merged with
    cache-only records (see :func:`merge_records`) and the merged list
    replaces the cache.
delete / clear_all
    Remote delete scoped to the owner, then the cache is updated whatever
    the remote outcome was.

Failure Policy
--------------
Remote failures are logged and absorbed here.  History is auxiliary and
must not block generation, so none of these methods raise because the
remote store is down.
"""

from __future__ import annotations

import logging

from .records import GenerationRecord
from .remote_store import GenerationStore
from .session import SessionContext

logger = logging.getLogger(__name__)


def merge_records(
    remote: list[GenerationRecord], local: list[GenerationRecord]
) -> list[GenerationRecord]:
    """Union of ``remote`` and the local records whose id is not in ``remote``.

    Remote records come first and win on id collisions.  Content is never
    compared: ids are assigned once at creation and records are immutable.

    Args:
        remote: Records read from the remote store.
        local: Records read from the local cache.

    Returns:
        Merged list without duplicate ids.
    """
    merged: list[GenerationRecord] = []
    seen: set[str] = set()
    for record in [*remote, *local]:
        if record.id in seen:
            continue
        seen.add(record.id)
        merged.append(record)
    return merged


def _newest_first(records: list[GenerationRecord]) -> list[GenerationRecord]:
    return sorted(records, key=lambda r: r.timestamp, reverse=True)


class HistoryReconciler:
    """Persist, fetch and delete generation records across both stores.

    Attributes
    ----------
    store : GenerationStore | None
        Remote store.  None means remote history is disabled and every
        operation behaves as if the remote store were unreachable.
    """

    def __init__(self, store: GenerationStore | None) -> None:
        self.store = store

    @property
    def remote_enabled(self) -> bool:
        return self.store is not None

    async def save(self, ctx: SessionContext, record: GenerationRecord) -> GenerationRecord:
        """Persist a new record for the active user.

        ``user_id`` is always taken from ``ctx``, never from the record.

        Args:
            ctx: Active session.
            record: Freshly created record.

        Returns:
            The record as stored, owned by ``ctx.user_id``.
        """
        record = record.model_copy(update={"user_id": ctx.user_id, "is_current_user": True})

        if self.store is None:
            ctx.cache.prepend(record)
            logger.info(f"Generation {record.id} saved to local cache (remote disabled)")
            return record

        try:
            await self.store.insert(record.to_row())
        except Exception as e:
            logger.error(f"Failed to save generation {record.id} to remote store: {e}")
            ctx.cache.prepend(record)
            logger.info(f"Generation {record.id} saved to local cache only")
            return record

        logger.info(f"Generation {record.id} saved to remote store")
        ctx.cache.prepend(record)
        return record

    def _local_view(self, ctx: SessionContext, current_user_only: bool) -> list[GenerationRecord]:
        records = [r.for_user(ctx.user_id) for r in ctx.cache.load()]
        if current_user_only:
            records = [r for r in records if ctx.owns(r.user_id)]
        return _newest_first(records)

    async def fetch(
        self,
        ctx: SessionContext,
        limit: int = 50,
        current_user_only: bool = False,
    ) -> list[GenerationRecord]:
        """Return the merged, de-duplicated history, newest first.

        Args:
            ctx: Active session.
            limit: Maximum number of rows requested from the remote store.
            current_user_only: Restrict the result to the active user's records.

        Returns:
            Remote records plus cache-only records, or the cache alone when
            the remote read fails or comes back empty.
        """
        if self.store is None:
            return self._local_view(ctx, current_user_only)

        try:
            rows = await self.store.select_recent(
                limit, user_id=ctx.user_id if current_user_only else None
            )
            remote = [GenerationRecord.from_row(row, ctx.user_id) for row in rows]
        except Exception as e:
            logger.error(f"Failed to fetch generations from remote store: {e}")
            return self._local_view(ctx, current_user_only)

        if not remote:
            logger.info("Remote store returned no generations, using local cache")
            return self._local_view(ctx, current_user_only)

        local = [r.for_user(ctx.user_id) for r in ctx.cache.load()]
        merged = _newest_first(merge_records(remote, local))
        ctx.cache.replace(merged)
        logger.debug(f"Merged {len(remote)} remote and {len(merged) - len(remote)} local-only generations")

        if current_user_only:
            return [r for r in merged if ctx.owns(r.user_id)]
        return merged

    async def delete(self, ctx: SessionContext, record_id: str) -> None:
        """Delete one of the active user's records from both stores."""
        if self.store is not None:
            try:
                await self.store.delete(record_id, ctx.user_id)
                logger.info(f"Generation {record_id} deleted from remote store")
            except Exception as e:
                logger.error(f"Failed to delete generation {record_id} from remote store: {e}")

        ctx.cache.remove(record_id)

    async def clear_all(self, ctx: SessionContext) -> None:
        """Delete all of the active user's records and empty the cache."""
        if self.store is not None:
            try:
                await self.store.delete_all(ctx.user_id)
                logger.info(f"All generations of {ctx.user_id} deleted from remote store")
            except Exception as e:
                logger.error(f"Failed to clear generations from remote store: {e}")

        ctx.cache.clear()
