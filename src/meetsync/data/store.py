from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

import orjson

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
Unsubscribe = Callable[[], Awaitable[None]]


class StoreError(RuntimeError):
    """Raised by store adapters when a read, write or subscription fails in transport."""


class RemoteStore(Protocol):
    """Key-value store that pushes payload-less change notifications."""

    async def get(self, key: str) -> Any:
        """Return the stored value, or ``None`` when the key is absent."""

    async def set(self, key: str, value: Any) -> None:
        """Upsert ``value`` under ``key``."""

    async def subscribe(self, key: str, on_change: ChangeCallback) -> Unsubscribe:
        """Call ``on_change`` whenever the value under ``key`` changes."""


class MemoryStore:
    """In-process store with the same contract as the remote one.

    Every ``set`` notifies all subscribers of the key, the writer included,
    on the next loop iteration. ``fail_reads`` / ``fail_writes`` make the next
    N calls raise ``StoreError``; ``latency`` delays each call.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None, *, latency: float = 0.0) -> None:
        self._values: Dict[str, bytes] = {}
        self._subscribers: Dict[str, List[ChangeCallback]] = {}
        self.latency = latency
        self.fail_reads = 0
        self.fail_writes = 0
        self.writes: List[Tuple[str, Any]] = []
        for key, value in (initial or {}).items():
            self._values[key] = orjson.dumps(value)

    async def _pause(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    async def get(self, key: str) -> Any:
        await self._pause()
        if self.fail_reads:
            self.fail_reads -= 1
            raise StoreError(f"Simulated read failure for {key!r}")
        raw = self._values.get(key)
        return None if raw is None else orjson.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        await self._pause()
        if self.fail_writes:
            self.fail_writes -= 1
            raise StoreError(f"Simulated write failure for {key!r}")
        payload = orjson.dumps(value)
        self._values[key] = payload
        self.writes.append((key, orjson.loads(payload)))
        self._notify(key)

    async def subscribe(self, key: str, on_change: ChangeCallback) -> Unsubscribe:
        callbacks = self._subscribers.setdefault(key, [])
        callbacks.append(on_change)
        logger.debug("Subscribed to %r (%d listener(s))", key, len(callbacks))

        async def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, []))

    def writes_for(self, key: str) -> List[Any]:
        return [value for written_key, value in self.writes if written_key == key]

    def _notify(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        for callback in list(self._subscribers.get(key, [])):
            loop.call_soon(callback)


__all__ = ["ChangeCallback", "MemoryStore", "RemoteStore", "StoreError", "Unsubscribe"]
