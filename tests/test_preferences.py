"""
Unit tests for the preference store and the shared-subscription bus.

Sharing contract:
- A shared preference opens no store observation until first subscribed
- Concurrent subscribers share one observation
- Re-subscribing within the grace window reuses it; after the window it is closed
- Subscribers get the latest value first, then updates in commit order
"""

import asyncio
import json

import pytest

from conftest import settle
from src.campus.preferences import (
    IS_YEAR_DISPLAY,
    JsonPreferenceStore,
    MemoryPreferenceStore,
    PreferenceBus,
    UserPreferences,
)

GRACE = 0.05


class CountingStore(MemoryPreferenceStore):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.observe_calls = 0
        self.read_calls = 0

    def observe(self, key):
        self.observe_calls += 1
        return super().observe(key)

    def read(self, key, default):
        self.read_calls += 1
        return super().read(key, default)


async def _next(subscription, timeout=1.0):
    return await asyncio.wait_for(subscription.__anext__(), timeout)


@pytest.fixture
def counting_store():
    return CountingStore({"username": "alice"})


@pytest.fixture
def bus(counting_store):
    return PreferenceBus(counting_store, grace_seconds=GRACE)


class TestSharedPreference:
    def test_cold_until_subscribed(self, bus, counting_store):
        shared = bus.shared("username", "")

        assert shared.value == "alice"
        assert shared.is_active is False
        assert counting_store.observe_calls == 0

    def test_same_key_same_stream(self, bus):
        assert bus.shared("username", "") is bus.shared("username", "")

    @pytest.mark.asyncio
    async def test_concurrent_subscribers_share_one_observation(self, bus, counting_store):
        shared = bus.shared("username", "")

        first = shared.subscribe()
        second = shared.subscribe()
        await settle()

        assert counting_store.observe_calls == 1
        assert await _next(first) == "alice"
        assert await _next(second) == "alice"
        first.close()
        second.close()

    @pytest.mark.asyncio
    async def test_resubscribe_within_grace_reuses_observation(self, bus, counting_store):
        shared = bus.shared("username", "")
        subscription = shared.subscribe()
        await settle()
        subscription.close()

        again = shared.subscribe()
        await settle()

        assert counting_store.observe_calls == 1
        assert shared.is_active is True
        again.close()

    @pytest.mark.asyncio
    async def test_observation_closes_after_grace(self, bus, counting_store):
        shared = bus.shared("username", "")
        subscription = shared.subscribe()
        await settle()
        subscription.close()

        await asyncio.sleep(GRACE * 4)

        assert shared.is_active is False
        reopened = shared.subscribe()
        await settle()
        assert counting_store.observe_calls == 2
        reopened.close()

    @pytest.mark.asyncio
    async def test_updates_arrive_in_commit_order(self, bus):
        shared = bus.shared("username", "")
        subscription = shared.subscribe()
        await settle()

        for name in ("bob", "carol", "dave"):
            await bus.set("username", name)

        received = [await _next(subscription) for _ in range(4)]
        assert received == ["alice", "bob", "carol", "dave"]
        subscription.close()

    @pytest.mark.asyncio
    async def test_late_subscriber_starts_from_latest(self, bus):
        shared = bus.shared("username", "")
        early = shared.subscribe()
        await settle()
        await bus.set("username", "bob")
        await settle()

        late = shared.subscribe()

        assert await _next(late) == "bob"
        early.close()
        late.close()

    @pytest.mark.asyncio
    async def test_start_reads_store_once(self, bus, counting_store):
        shared = bus.shared("username", "")

        subscription = shared.subscribe()
        await settle()

        assert counting_store.read_calls == 1
        assert await _next(subscription) == "alice"
        subscription.close()

    @pytest.mark.asyncio
    async def test_value_current_right_after_write(self, bus):
        shared = bus.shared("username", "")
        subscription = shared.subscribe()
        await settle()

        await bus.set("username", "bob")

        assert shared.value == "bob"
        assert await _next(subscription) == "alice"
        assert await _next(subscription) == "bob"
        with pytest.raises(asyncio.TimeoutError):
            await _next(subscription, timeout=GRACE)
        subscription.close()

    @pytest.mark.asyncio
    async def test_direct_store_write_seen_by_reader(self, bus, counting_store):
        shared = bus.shared("username", "")
        subscription = shared.subscribe()

        await counting_store.write("username", "carol")

        assert shared.value == "carol"
        subscription.close()

    @pytest.mark.asyncio
    async def test_value_tracks_writes_while_inactive(self, bus):
        shared = bus.shared("username", "")

        await bus.set("username", "erin")

        assert shared.value == "erin"

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_iterating(self, bus):
        shared = bus.shared("username", "")
        received = []

        async def consume():
            async with shared.subscribe() as values:
                async for value in values:
                    received.append(value)

        task = asyncio.create_task(consume())
        await settle()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert received == ["alice"]
        assert shared.subscriber_count == 0


class TestUserPreferences:
    @pytest.mark.asyncio
    async def test_typed_keys_use_defaults(self):
        preferences = UserPreferences(PreferenceBus(MemoryPreferenceStore()))

        assert preferences.get(IS_YEAR_DISPLAY) is False
        await preferences.change(IS_YEAR_DISPLAY, True)
        assert preferences.get(IS_YEAR_DISPLAY) is True


class TestJsonPreferenceStore:
    @pytest.mark.asyncio
    async def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "state" / "preferences.json"
        store = JsonPreferenceStore(path)

        await store.write("year_and_semester", "2023-2024-1")
        await store.write("cookies", [{"name": "rememberMe", "value": "x"}])

        reopened = JsonPreferenceStore(path)
        assert reopened.read("year_and_semester", "") == "2023-2024-1"
        assert reopened.read("cookies", []) == [{"name": "rememberMe", "value": "x"}]
        assert json.loads(path.read_text(encoding="utf-8"))["year_and_semester"] == "2023-2024-1"

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "preferences.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonPreferenceStore(path)

        assert store.read("username", "default") == "default"

    def test_read_returns_copies(self):
        store = MemoryPreferenceStore({"cookies": [{"name": "a"}]})

        store.read("cookies", [])[0]["name"] = "changed"

        assert store.read("cookies", []) == [{"name": "a"}]
