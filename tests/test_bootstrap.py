from __future__ import annotations

import logging

import pytest

from meetsync.bootstrap import logging as bootstrap_logging
from meetsync.config import LogSettings


@pytest.fixture
def clean_root_logger(monkeypatch: pytest.MonkeyPatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    monkeypatch.setattr(bootstrap_logging, "_INITIALIZED", False)
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_configure_logging_writes_rotating_file(tmp_path, clean_root_logger) -> None:
    settings = LogSettings(level="info", directory=tmp_path / "logs")

    bootstrap_logging.configure_logging(settings=settings)
    logging.getLogger("meetsync.test").warning("hello from the test")
    for handler in clean_root_logger.handlers:
        handler.flush()

    assert clean_root_logger.level == logging.INFO
    assert "hello from the test" in (tmp_path / "logs" / "meetsync.log").read_text(encoding="utf-8")


def test_configure_logging_runs_once(tmp_path, clean_root_logger) -> None:
    settings = LogSettings(level="DEBUG", directory=tmp_path)
    before = len(clean_root_logger.handlers)

    bootstrap_logging.configure_logging(settings=settings)
    bootstrap_logging.configure_logging(level="ERROR", settings=settings)

    assert len(clean_root_logger.handlers) == before + 2
    assert clean_root_logger.level == logging.DEBUG
