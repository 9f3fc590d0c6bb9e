"""SupabaseStore against a recording stand-in for the async client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from meetsync.config import SupabaseSettings
from meetsync.data import StoreError, SupabaseNotConfiguredError, SupabaseStore


class FakeQuery:
    def __init__(self, client: "FakeClient", table: str) -> None:
        self.client = client
        self.table = table
        self.calls: List[tuple] = []

    def select(self, *columns: str) -> "FakeQuery":
        self.calls.append(("select", columns))
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.calls.append(("eq", column, value))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.calls.append(("limit", count))
        return self

    def upsert(self, payload: Dict[str, Any], on_conflict: str = "") -> "FakeQuery":
        self.calls.append(("upsert", payload, on_conflict))
        return self

    async def execute(self) -> SimpleNamespace:
        if self.client.fail:
            raise ConnectionError("network down")
        for call in self.calls:
            if call[0] == "upsert":
                self.client.rows[call[1]["key"]] = call[1]["value"]
                return SimpleNamespace(data=[call[1]])
        key = next(call[2] for call in self.calls if call[0] == "eq")
        if key in self.client.rows:
            return SimpleNamespace(data=[{"value": self.client.rows[key]}])
        return SimpleNamespace(data=[])


class FakeChannel:
    def __init__(self, name: str) -> None:
        self.name = name
        self.listener: Optional[Dict[str, Any]] = None
        self.subscribed = False

    def on_postgres_changes(self, **kwargs: Any) -> "FakeChannel":
        self.listener = kwargs
        return self

    async def subscribe(self) -> "FakeChannel":
        self.subscribed = True
        return self


class FakeClient:
    def __init__(self) -> None:
        self.rows: Dict[str, Any] = {}
        self.fail = False
        self.queries: List[FakeQuery] = []
        self.channels: List[FakeChannel] = []
        self.removed: List[FakeChannel] = []

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query

    def channel(self, name: str) -> FakeChannel:
        channel = FakeChannel(name)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        self.removed.append(channel)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def supabase_store(client: FakeClient) -> SupabaseStore:
    settings = SupabaseSettings(url="https://example.supabase.co", anon_key="anon")
    return SupabaseStore(settings, _client=client)


async def test_get_returns_none_for_missing_key(supabase_store: SupabaseStore, client: FakeClient) -> None:
    assert await supabase_store.get("events") is None
    query = client.queries[-1]
    assert query.table == "shared_state"
    assert ("eq", "key", "events") in query.calls


async def test_set_upserts_on_key(supabase_store: SupabaseStore, client: FakeClient) -> None:
    await supabase_store.set("users", [{"id": 1}])

    assert client.queries[-1].calls == [("upsert", {"key": "users", "value": [{"id": 1}]}, "key")]
    assert await supabase_store.get("users") == [{"id": 1}]


async def test_transport_errors_become_store_errors(supabase_store: SupabaseStore, client: FakeClient) -> None:
    client.fail = True
    with pytest.raises(StoreError):
        await supabase_store.get("users")
    with pytest.raises(StoreError):
        await supabase_store.set("users", [])


async def test_subscription_forwards_without_payload(supabase_store: SupabaseStore, client: FakeClient) -> None:
    notified: List[None] = []

    unsubscribe = await supabase_store.subscribe("events", lambda: notified.append(None))
    [channel] = client.channels
    assert channel.subscribed
    assert channel.listener["filter"] == "key=eq.events"
    assert channel.listener["table"] == "shared_state"

    channel.listener["callback"]({"new": {"value": "ignored"}})
    assert notified == [None]

    await unsubscribe()
    assert client.removed == [channel]


async def test_unconfigured_store_refuses_to_connect() -> None:
    store = SupabaseStore(SupabaseSettings(url=None, anon_key=None))
    with pytest.raises(SupabaseNotConfiguredError):
        await store.get("users")
