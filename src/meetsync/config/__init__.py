"""Configuration models and helpers."""

from __future__ import annotations

from .settings import (
    AppSettings,
    LogSettings,
    ServerSettings,
    SupabaseSettings,
    SyncSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "LogSettings",
    "ServerSettings",
    "SupabaseSettings",
    "SyncSettings",
    "get_settings",
]
