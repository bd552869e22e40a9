"""Persisted user preferences and the shared-subscription bus on top of them.

PreferenceStore is the durable key/value layer: read() is synchronous,
write() persists and notifies, observe() opens a KeyWatch that receives
every change committed to one key after it was opened.

PreferenceBus turns per-key observations into SharedPreference streams. A
SharedPreference is cold until its first subscriber, shares one underlying
observation between all subscribers, and keeps it open for a grace window
after the last subscriber leaves so that quick re-subscription does not
reopen the store.
"""

import asyncio
import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from src.campus.logging import get_logger
from src.campus.streams import StateStream, Subscription

T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_GRACE_SECONDS = 5.0


class KeyWatch:
    """Changes committed to one key, in commit order, from registration on."""

    def __init__(self, watchers: list[asyncio.Queue[Any]]) -> None:
        self._watchers = watchers
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        watchers.append(self._queue)

    def drain(self) -> list[Any]:
        """Take every change queued so far without waiting."""
        values = []
        while not self._queue.empty():
            values.append(self._queue.get_nowait())
        return values

    def close(self) -> None:
        if self._queue in self._watchers:
            self._watchers.remove(self._queue)

    def __aiter__(self) -> "KeyWatch":
        return self

    async def __anext__(self) -> Any:
        return await self._queue.get()


class MemoryPreferenceStore:
    """In-process preference store with per-key change notification."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})
        self._watchers: dict[str, list[asyncio.Queue[Any]]] = {}
        self._lock = asyncio.Lock()

    def read(self, key: str, default: Any) -> Any:
        return copy.deepcopy(self._values.get(key, default))

    async def write(self, key: str, value: Any) -> None:
        async with self._lock:
            self._values[key] = copy.deepcopy(value)
            await self._persist()
            for queue in self._watchers.get(key, []):
                queue.put_nowait(copy.deepcopy(value))

    def observe(self, key: str) -> KeyWatch:
        """Register for changes to `key`; pair with read() for the current value."""
        return KeyWatch(self._watchers.setdefault(key, []))

    async def _persist(self) -> None:
        """Hook for durable subclasses; called with the write lock held."""


class JsonPreferenceStore(MemoryPreferenceStore):
    """Preference store persisted as one JSON document.

    The file is rewritten through a temporary file and os.replace(), so a
    crash mid-write leaves the previous document intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(self._load())
        logger.info("preference_store_opened", path=str(self.path), keys=len(self._values))

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("preference_store_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("preference_store_invalid", path=str(self.path))
            return {}
        return data

    async def _persist(self) -> None:
        snapshot = json.dumps(self._values, ensure_ascii=False, indent=2)
        await asyncio.to_thread(self._write_file, snapshot)

    def _write_file(self, text: str) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, self.path)


class SharedPreference(StateStream[T]):
    """One key's broadcast stream, started lazily and torn down after a grace window.

    While active, the stream holds a KeyWatch on the store. Reading `value`
    applies any changes still queued on the watch first, so a reader never
    sees a value older than the last completed write.
    """

    def __init__(
        self,
        store: MemoryPreferenceStore,
        key: str,
        default: T,
        grace_seconds: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        super().__init__(default)
        self.key = key
        self._store = store
        self._default = default
        self._grace_seconds = grace_seconds
        self._watch: KeyWatch | None = None
        self._upstream: asyncio.Task[None] | None = None
        self._teardown: asyncio.TimerHandle | None = None

    @property
    def is_active(self) -> bool:
        """True while the underlying store observation is open."""
        return self._watch is not None

    @property
    def value(self) -> T:
        if self._watch is None:
            return self._store.read(self.key, self._default)
        self.catch_up()
        return self._value

    def catch_up(self) -> None:
        """Publish changes committed to the store but not yet delivered."""
        if self._watch is None:
            return
        for value in self._watch.drain():
            self._apply(value)

    def _apply(self, value: T) -> None:
        if value != self._value:
            self.set(value)

    def subscribe(self) -> Subscription[T]:
        if self._teardown is not None:
            self._teardown.cancel()
            self._teardown = None
        if self._watch is None:
            # Watch registers before the read, so no write falls between them
            self._watch = self._store.observe(self.key)
            self._value = self._store.read(self.key, self._default)
            self._upstream = asyncio.get_running_loop().create_task(
                self._run_upstream(self._watch), name=f"preference:{self.key}"
            )
            logger.debug("shared_preference_started", key=self.key)
        return super().subscribe()

    async def _run_upstream(self, watch: KeyWatch) -> None:
        async for value in watch:
            self._apply(value)

    def _unsubscribe(self, subscription: Subscription[T]) -> None:
        super()._unsubscribe(subscription)
        if self.subscriber_count == 0 and self._watch is not None:
            self._schedule_teardown()

    def _schedule_teardown(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._stop_upstream()
            return
        self._teardown = loop.call_later(self._grace_seconds, self._stop_upstream)

    def _stop_upstream(self) -> None:
        self._teardown = None
        if self.subscriber_count > 0 or self._watch is None:
            return
        self._watch.close()
        self._watch = None
        if self._upstream is not None:
            self._upstream.cancel()
            self._upstream = None
        logger.debug("shared_preference_stopped", key=self.key)


class PreferenceBus:
    """Hands out one SharedPreference per key over a PreferenceStore."""

    def __init__(
        self, store: MemoryPreferenceStore, grace_seconds: float = DEFAULT_GRACE_SECONDS
    ) -> None:
        self.store = store
        self.grace_seconds = grace_seconds
        self._shared: dict[str, SharedPreference[Any]] = {}

    def shared(self, key: str, default: T) -> SharedPreference[T]:
        if key not in self._shared:
            self._shared[key] = SharedPreference(self.store, key, default, self.grace_seconds)
        return self._shared[key]

    def get(self, key: str, default: T) -> T:
        return self.shared(key, default).value

    async def set(self, key: str, value: Any) -> None:
        await self.store.write(key, value)
        shared = self._shared.get(key)
        if shared is not None:
            shared.catch_up()
        logger.debug("preference_changed", key=key)


@dataclass(frozen=True)
class PreferenceKey(Generic[T]):
    name: str
    default: T


# Persisted keys
COOKIES: PreferenceKey[list[dict[str, Any]]] = PreferenceKey("cookies", [])
USERNAME: PreferenceKey[str] = PreferenceKey("username", "")
ENTER_UNIVERSITY_YEAR: PreferenceKey[str] = PreferenceKey("enter_university_year", "")
YEAR_AND_SEMESTER: PreferenceKey[str] = PreferenceKey("year_and_semester", "")
IS_OTHER_COURSE_DISPLAY: PreferenceKey[bool] = PreferenceKey("is_other_course_display", False)
IS_YEAR_DISPLAY: PreferenceKey[bool] = PreferenceKey("is_year_display", False)
IS_DATE_DISPLAY: PreferenceKey[bool] = PreferenceKey("is_date_display", False)
IS_TIME_DISPLAY: PreferenceKey[bool] = PreferenceKey("is_time_display", False)
ENABLE_SYSTEM_COLOR: PreferenceKey[bool] = PreferenceKey("enable_system_color", False)
SELECTED_DARK_MODE: PreferenceKey[str] = PreferenceKey("selected_dark_mode", "system")
IS_PIN: PreferenceKey[bool] = PreferenceKey("is_pin", False)


class UserPreferences:
    """Typed access to the persisted keys through a PreferenceBus."""

    def __init__(self, bus: PreferenceBus) -> None:
        self.bus = bus

    def shared(self, key: PreferenceKey[T]) -> SharedPreference[T]:
        return self.bus.shared(key.name, key.default)

    def get(self, key: PreferenceKey[T]) -> T:
        return self.bus.get(key.name, key.default)

    async def change(self, key: PreferenceKey[T], value: T) -> None:
        await self.bus.set(key.name, value)


def open_preferences(state_dir: str | Path, grace_seconds: float = DEFAULT_GRACE_SECONDS) -> UserPreferences:
    """Open the JSON-backed preferences under state_dir."""
    store = JsonPreferenceStore(Path(state_dir) / "preferences.json")
    return UserPreferences(PreferenceBus(store, grace_seconds))
