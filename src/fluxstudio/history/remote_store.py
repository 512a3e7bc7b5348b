"""Durable remote store for generation records.

The reconciler talks to the remote store through :class:`GenerationStore`,
a small async interface over one table of rows keyed by ``id`` and owned
by ``user_id``.  :class:`SupabaseGenerationStore` implements it on top of
the Supabase (PostgREST) async client.

Implementations raise on any failure.  Deciding what a failure means for
the user is the reconciler's job, not the store's.

Table Layout
------------
::

    create table generations (
        id          text primary key,
        user_id     text not null,
        model_id    text not null,
        model_name  text not null,
        prompt      text,
        parameters  jsonb,
        output      jsonb,
        created_at  timestamptz not null default now()
    );
    create index on generations (user_id, created_at desc);
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from supabase import AsyncClient, acreate_client

from fluxstudio.core.config import FluxStudioConfig

logger = logging.getLogger(__name__)


class GenerationStore(ABC):
    """Async access to the remote generation table."""

    @abstractmethod
    async def insert(self, row: dict[str, Any]) -> None:
        """Insert one row."""

    @abstractmethod
    async def select_recent(self, limit: int, user_id: str | None = None) -> list[dict[str, Any]]:
        """Return up to ``limit`` rows ordered by ``created_at`` descending.

        Args:
            limit: Maximum number of rows.
            user_id: When given, only rows owned by this user.
        """

    @abstractmethod
    async def delete(self, record_id: str, user_id: str) -> None:
        """Delete the row with ``record_id`` if it is owned by ``user_id``."""

    @abstractmethod
    async def delete_all(self, user_id: str) -> None:
        """Delete every row owned by ``user_id``."""


class SupabaseGenerationStore(GenerationStore):
    """Generation table stored in Supabase.

    Args:
        client: Connected Supabase async client.
        table: Table name (``generations`` by default).
    """

    def __init__(self, client: AsyncClient, table: str = "generations"):
        self.client = client
        self.table = table

    async def insert(self, row: dict[str, Any]) -> None:
        await self.client.table(self.table).insert(row).execute()

    async def select_recent(self, limit: int, user_id: str | None = None) -> list[dict[str, Any]]:
        query = self.client.table(self.table).select("*")
        if user_id is not None:
            query = query.eq("user_id", user_id)
        response = await query.order("created_at", desc=True).limit(limit).execute()
        return list(response.data or [])

    async def delete(self, record_id: str, user_id: str) -> None:
        await self.client.table(self.table).delete().eq("id", record_id).eq("user_id", user_id).execute()

    async def delete_all(self, user_id: str) -> None:
        await self.client.table(self.table).delete().eq("user_id", user_id).execute()


async def create_remote_store(config: FluxStudioConfig) -> GenerationStore | None:
    """Connect to Supabase when it is configured.

    Args:
        config: Application configuration.

    Returns:
        A connected store, or None when the Supabase settings are missing or
        the client cannot be created.  None means history stays local.
    """
    if not config.remote_history_enabled:
        logger.warning("Supabase is not configured; generation history will be kept locally only")
        return None

    try:
        client = await acreate_client(config.supabase_url, config.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None

    logger.info(f"Remote generation history enabled (table '{config.history_table}')")
    return SupabaseGenerationStore(client, table=config.history_table)
