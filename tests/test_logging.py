"""Tests for the logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from lorelink.utils import logging as logging_utils


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    hover_levels = {name: logging.getLogger(name).level for name in logging_utils.HOVER_LOGGERS}
    yield
    for name, hover_level in hover_levels.items():
        logging.getLogger(name).setLevel(hover_level)
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_rotating_file(tmp_path: Path, restore_root_logger: None) -> None:
    path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("lorelink.test").debug("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert path == tmp_path / "lorelink.log"
    assert logging_utils.get_log_path() == path
    assert "hello from test" in path.read_text(encoding="utf-8")
    assert logging.getLogger("bs4").level == logging.WARNING


def test_log_dir_environment_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, restore_root_logger: None) -> None:
    monkeypatch.setenv("LORELINK_LOG_DIR", str(tmp_path / "env-logs"))

    path = logging_utils.setup_logging(console=False, force=True)

    assert path.parent == tmp_path / "env-logs"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("10", 10), (30, 30), (None, logging.INFO), ("nope", logging.INFO)],
)
def test_parse_level(value: object, expected: int) -> None:
    assert logging_utils.parse_level(value) == expected  # type: ignore[arg-type]


def test_get_logger_returns_named_logger() -> None:
    assert logging_utils.get_logger("lorelink.x").name == "lorelink.x"


def test_hover_loggers_stay_at_info_during_debug(tmp_path: Path, restore_root_logger: None) -> None:
    path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, force=True)

    logging.getLogger("lorelink.ui.domain.tooltip_stack").debug("Hovering spell 'Fireball' at depth 0")
    logging.getLogger("lorelink.references.resolver").debug("resolver detail")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = path.read_text(encoding="utf-8")
    assert "Hovering spell" not in text
    assert "resolver detail" in text
    assert all(logging.getLogger(name).level == logging.INFO for name in logging_utils.HOVER_LOGGERS)


def test_trace_hover_lets_hover_transitions_through(tmp_path: Path, restore_root_logger: None) -> None:
    path = logging_utils.setup_logging(logging.DEBUG, log_dir=tmp_path, console=False, trace_hover=True, force=True)

    logging.getLogger("lorelink.ui.domain.tooltip_stack").debug("Hovering spell 'Fireball' at depth 0")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "Hovering spell 'Fireball' at depth 0" in path.read_text(encoding="utf-8")
    assert logging.getLogger("lorelink.ui.domain.text_processor").level == logging.NOTSET
