from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from ..config import LogSettings, get_settings

_INITIALIZED = False


def configure_logging(*, level: Optional[str] = None, settings: Optional[LogSettings] = None) -> None:
    """Configure application-wide logging with console and rotating file output."""

    global _INITIALIZED
    if _INITIALIZED:
        return

    log_settings = settings or get_settings().logging
    resolved_level = getattr(logging, (level or log_settings.level).upper(), logging.INFO)
    log_settings.directory.mkdir(parents=True, exist_ok=True)
    log_path = log_settings.directory / "meetsync.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(resolved_level)
    for handler in handlers:
        root.addHandler(handler)

    _INITIALIZED = True
    logging.getLogger(__name__).debug("Logging configured. Output file: %s", log_path)
