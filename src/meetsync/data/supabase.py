from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from supabase import AsyncClient, acreate_client

from ..config.settings import SupabaseSettings
from .store import ChangeCallback, StoreError, Unsubscribe

logger = logging.getLogger(__name__)


class SupabaseNotConfiguredError(RuntimeError):
    """Raised when the Supabase URL or anon key is missing."""


@dataclass
class SupabaseStore:
    """Key-value adapter over a ``key``/``value`` table with realtime change feeds.

    Expected table::

        create table shared_state (key text primary key, value jsonb not null);
    """

    settings: SupabaseSettings
    _client: Optional[AsyncClient] = None

    async def ensure_client(self) -> AsyncClient:
        if self._client is not None:
            return self._client
        if not self.settings.is_configured:
            raise SupabaseNotConfiguredError("Supabase settings are missing URL or anon key.")
        self._client = await acreate_client(self.settings.url, self.settings.anon_key)
        return self._client

    async def get(self, key: str) -> Any:
        client = await self.ensure_client()
        try:
            response = await (
                client.table(self.settings.table)
                .select("value")
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"Reading {key!r} from Supabase failed: {exc}") from exc
        rows = response.data or []
        if not rows:
            return None
        return rows[0].get("value")

    async def set(self, key: str, value: Any) -> None:
        client = await self.ensure_client()
        payload: Dict[str, Any] = {"key": key, "value": value}
        try:
            await client.table(self.settings.table).upsert(payload, on_conflict="key").execute()
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"Writing {key!r} to Supabase failed: {exc}") from exc

    async def subscribe(self, key: str, on_change: ChangeCallback) -> Unsubscribe:
        client = await self.ensure_client()
        channel = client.channel(f"shared-state:{key}")

        def _forward(_payload: Any) -> None:
            # The change payload is ignored; subscribers re-fetch.
            on_change()

        try:
            channel.on_postgres_changes(
                event="*",
                schema="public",
                table=self.settings.table,
                filter=f"key=eq.{key}",
                callback=_forward,
            )
            await channel.subscribe()
        except Exception as exc:  # noqa: BLE001
            raise StoreError(f"Subscribing to {key!r} failed: {exc}") from exc
        logger.info("Realtime subscription opened for %r", key)

        async def unsubscribe() -> None:
            try:
                await client.remove_channel(channel)
            except Exception as exc:  # noqa: BLE001
                raise StoreError(f"Closing subscription for {key!r} failed: {exc}") from exc
            logger.info("Realtime subscription closed for %r", key)

        return unsubscribe


__all__ = ["SupabaseNotConfiguredError", "SupabaseStore"]
