"""Supabase-backed key-value store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from frame_gallery.services.portfolios import KeyValueStore


@dataclass
class SupabaseKeyValueStore(KeyValueStore):
    """Key-value store on a `key text primary key, value jsonb` table."""

    client: Client
    table: str = "kv_store"

    def get(self, key: str) -> object | None:
        """Return the stored JSON value for a key."""
        response = (
            self.client.table(self.table)
            .select("value")
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return response.data[0].get("value")

    def set(self, key: str, value: object) -> None:
        """Upsert a JSON value."""
        self.client.table(self.table).upsert(
            {
                "key": key,
                "value": value,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def incr(self, key: str) -> int:
        """Increment a counter stored as a JSON number."""
        current = self.get(key)
        value = int(current) + 1 if isinstance(current, int | float) else 1
        self.set(key, value)
        return value
