"""Data access layer."""

from __future__ import annotations

from .channel import (
    ChannelClosedError,
    ChannelNotReadyError,
    ChannelState,
    SharedStateChannel,
    canonical,
)
from .store import MemoryStore, RemoteStore, StoreError
from .supabase import SupabaseNotConfiguredError, SupabaseStore

__all__ = [
    "ChannelClosedError",
    "ChannelNotReadyError",
    "ChannelState",
    "MemoryStore",
    "RemoteStore",
    "SharedStateChannel",
    "StoreError",
    "SupabaseNotConfiguredError",
    "SupabaseStore",
    "canonical",
]
