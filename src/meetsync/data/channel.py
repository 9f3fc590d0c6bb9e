"""Per-key synchronization between in-memory state and the remote store.

Local edits are applied immediately and persisted after a quiet window.
Remote change notifications trigger a re-fetch, and the result replaces the
local value unless it matches what this channel last wrote or read, or is
still writing. That comparison is what keeps a channel from re-absorbing its own writes.
"""

from __future__ import annotations

import asyncio
import logging
from copy import deepcopy
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, Set, Tuple, TypeVar

import orjson

from ..domain import MalformedSnapshotError
from .store import RemoteStore, StoreError, Unsubscribe

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEBOUNCE_SECONDS = 0.25


class ChannelState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class ChannelNotReadyError(RuntimeError):
    """Raised when mutating a channel before its initial load finished."""


class ChannelClosedError(RuntimeError):
    """Raised when mutating a channel after it was closed."""


def canonical(value: Any) -> bytes:
    """Stable byte serialization used to compare snapshots."""

    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)


class SharedStateChannel(Generic[T]):
    def __init__(
        self,
        store: RemoteStore,
        key: str,
        *,
        default: T,
        decode: Callable[[Any], T],
        encode: Callable[[T], Any],
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.key = key
        self._store = store
        self._default = default
        self._decode = decode
        self._encode = encode
        self._debounce = debounce
        self._value: T = deepcopy(default)
        self._state = ChannelState.UNINITIALIZED
        self._ready = asyncio.Event()
        self._last_synced: Optional[bytes] = None
        self._timer: Optional[asyncio.Task[None]] = None
        self._inflight: Set[asyncio.Task[Any]] = set()
        self._watchers: List[Callable[[T], None]] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False
        self._fetch_seq = 0
        self._applied_seq = 0
        self._writing: List[bytes] = []

    @property
    def value(self) -> T:
        return self._value

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def last_synced(self) -> Optional[bytes]:
        return self._last_synced

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def write_pending(self) -> bool:
        return self._timer is not None

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    async def __aenter__(self) -> "SharedStateChannel[T]":
        await self.load()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Loading and subscription
    # ------------------------------------------------------------------

    async def load(self) -> T:
        """Fetch the initial value once; later calls wait for that first load."""

        if self._state is not ChannelState.UNINITIALIZED:
            await self._ready.wait()
            return self._value

        self._state = ChannelState.LOADING
        try:
            value, synced = await self._fetch()
        except (StoreError, MalformedSnapshotError) as exc:
            logger.warning("Loading %r failed, continuing with fallback value: %s", self.key, exc)
            value, synced = deepcopy(self._default), None

        if self._closed:
            logger.debug("Discarding load result for %r after close", self.key)
            self._ready.set()
            return self._value

        self._last_synced = synced
        self._value = value
        self._state = ChannelState.READY
        self._ready.set()
        logger.info("Channel %r ready", self.key)
        await self._subscribe()
        return self._value

    async def _fetch(self) -> Tuple[T, Optional[bytes]]:
        raw = await self._store.get(self.key)
        if raw is None:
            logger.info("No stored value for %r, starting from fallback", self.key)
            return deepcopy(self._default), None
        value = self._decode(raw)
        return value, canonical(self._encode(value))

    async def _subscribe(self) -> None:
        if self._unsubscribe is not None or self._closed:
            return
        try:
            unsubscribe = await self._store.subscribe(self.key, self._on_remote_change)
        except StoreError as exc:
            logger.warning("Subscribing to %r failed; remote changes will not be absorbed: %s", self.key, exc)
            return
        if self._closed:
            await unsubscribe()
            return
        self._unsubscribe = unsubscribe

    # ------------------------------------------------------------------
    # Local mutation and persistence
    # ------------------------------------------------------------------

    def watch(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback`` for every local or remote value change."""

        self._watchers.append(callback)

        def unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return unwatch

    def set_value(self, updater: Callable[[T], T], *, immediate: bool = False) -> Optional[asyncio.Task[None]]:
        """Apply ``updater`` to the local value now and schedule its persistence.

        With ``immediate`` the write is dispatched right away instead of after
        the debounce window; the returned task completes when it lands.
        Exceptions raised by ``updater`` propagate and leave the value as it was.
        """

        if self._closed:
            raise ChannelClosedError(f"Channel {self.key!r} is closed")
        if self._state is not ChannelState.READY:
            raise ChannelNotReadyError(f"Channel {self.key!r} has not finished loading")

        self._value = updater(self._value)
        self._emit()
        if immediate:
            self._cancel_timer()
            return self._spawn(self._persist())
        self._cancel_timer()
        self._timer = asyncio.create_task(self._debounced_persist())
        return None

    async def flush(self) -> None:
        """Write any pending value now and wait for in-flight work to settle."""

        if self._timer is not None:
            self._cancel_timer()
            self._spawn(self._persist())
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _debounced_persist(self) -> None:
        await asyncio.sleep(self._debounce)
        self._timer = None
        self._spawn(self._persist())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _persist(self) -> None:
        snapshot = self._encode(self._value)
        serialized = canonical(snapshot)
        if serialized == self._last_synced:
            logger.debug("Skipping write for %r; value matches last sync", self.key)
            return
        self._writing.append(serialized)
        try:
            await self._store.set(self.key, snapshot)
        except StoreError as exc:
            if not self._closed:
                logger.warning("Saving %r failed; keeping local value until the next sync: %s", self.key, exc)
            return
        finally:
            self._writing.remove(serialized)
        if self._closed:
            logger.debug("Discarding save completion for %r after close", self.key)
            return
        self._last_synced = serialized
        logger.debug("Saved %r (%d bytes)", self.key, len(serialized))

    # ------------------------------------------------------------------
    # Remote changes
    # ------------------------------------------------------------------

    def _on_remote_change(self) -> None:
        if self._closed or self._state is not ChannelState.READY:
            return
        self._spawn(self._absorb())

    async def _absorb(self) -> None:
        self._fetch_seq += 1
        seq = self._fetch_seq
        try:
            raw = await self._store.get(self.key)
        except StoreError as exc:
            logger.warning("Re-fetching %r after a change notification failed: %s", self.key, exc)
            return
        if self._closed:
            logger.debug("Discarding re-fetch of %r after close", self.key)
            return
        if seq < self._applied_seq:
            logger.debug("Discarding superseded re-fetch of %r", self.key)
            return
        self._applied_seq = seq
        if raw is None:
            logger.warning("Stored value for %r disappeared; keeping local value", self.key)
            return
        try:
            value = self._decode(raw)
        except MalformedSnapshotError as exc:
            logger.warning("Ignoring malformed remote value for %r: %s", self.key, exc)
            return

        serialized = canonical(self._encode(value))
        if serialized == self._last_synced:
            logger.debug("Ignoring echo of our own write to %r", self.key)
            return
        if serialized in self._writing:
            # The notification for a write can arrive before the write returns.
            logger.debug("Ignoring echo of in-flight write to %r", self.key)
            self._last_synced = serialized
            return
        # Record the sync point before watchers run so that any write they
        # trigger compares against the absorbed value.
        self._last_synced = serialized
        if serialized == canonical(self._encode(self._value)):
            return
        self._value = value
        logger.info("Absorbed remote change to %r", self.key)
        self._emit()

    def _emit(self) -> None:
        for watcher in list(self._watchers):
            try:
                watcher(self._value)
            except Exception:
                logger.exception("Watcher for %r failed", self.key)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def aclose(self, *, flush: bool = True) -> None:
        """Stop syncing. With ``flush`` a pending debounced write is sent first.

        Anything still in flight afterwards completes without touching state.
        """

        if self._closed:
            return
        try:
            if flush and self._state is ChannelState.READY:
                await self.flush()
        finally:
            self._closed = True
            timer = self._timer
            self._cancel_timer()
            if timer is not None:
                await asyncio.gather(timer, return_exceptions=True)
            self._watchers.clear()
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            if unsubscribe is not None:
                try:
                    await unsubscribe()
                except StoreError as exc:
                    logger.warning("Unsubscribing from %r failed: %s", self.key, exc)
            logger.info("Channel %r closed", self.key)


__all__ = [
    "ChannelClosedError",
    "ChannelNotReadyError",
    "ChannelState",
    "DEFAULT_DEBOUNCE_SECONDS",
    "SharedStateChannel",
    "canonical",
]
