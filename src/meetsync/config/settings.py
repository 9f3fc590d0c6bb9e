from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from platformdirs import user_log_dir

load_dotenv()

APP_NAME = "meetsync"
APP_AUTHOR = "meetsync"


@dataclass(frozen=True)
class SupabaseSettings:
    url: Optional[str]
    anon_key: Optional[str]
    table: str = "shared_state"

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @property
    def missing_env_vars(self) -> list[str]:
        missing = []
        if not self.url:
            missing.append("SUPABASE_URL")
        if not self.anon_key:
            missing.append("SUPABASE_ANON_KEY")
        return missing


@dataclass(frozen=True)
class SyncSettings:
    debounce: timedelta
    tick_interval: timedelta
    retention: timedelta
    utc_offset: timedelta
    users_key: str = "users"
    events_key: str = "events"


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int


@dataclass(frozen=True)
class LogSettings:
    level: str
    directory: Path


@dataclass(frozen=True)
class AppSettings:
    supabase: SupabaseSettings
    sync: SyncSettings
    server: ServerSettings
    logging: LogSettings


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    supabase = SupabaseSettings(
        url=os.getenv("SUPABASE_URL"),
        anon_key=os.getenv("SUPABASE_ANON_KEY"),
        table=os.getenv("SUPABASE_STATE_TABLE", "shared_state"),
    )

    sync = SyncSettings(
        debounce=timedelta(milliseconds=_float_from_env("MEETSYNC_DEBOUNCE_MS", 250)),
        tick_interval=timedelta(seconds=_float_from_env("MEETSYNC_TICK_SECONDS", 15)),
        retention=timedelta(days=_int_from_env("MEETSYNC_RETENTION_DAYS", 3)),
        utc_offset=timedelta(hours=_float_from_env("MEETSYNC_UTC_OFFSET_HOURS", 9)),
    )

    server = ServerSettings(
        host=os.getenv("MEETSYNC_HOST", "127.0.0.1"),
        port=_int_from_env("MEETSYNC_PORT", 8000),
    )

    log = LogSettings(
        level=os.getenv("MEETSYNC_LOG_LEVEL", "INFO").upper(),
        directory=Path(os.getenv("MEETSYNC_LOG_DIR") or user_log_dir(APP_NAME, APP_AUTHOR)),
    )

    return AppSettings(supabase=supabase, sync=sync, server=server, logging=log)
