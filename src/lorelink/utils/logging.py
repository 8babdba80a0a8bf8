"""Logging setup for the Lorelink reference viewer.

Every pointer move over reference content passes through the tooltip stack
manager, and every DOM insertion through the batch processor. At DEBUG those
modules would drown the rest of the log, so they stay at INFO unless hover
tracing is requested through the ``trace_hover`` setting.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_logger", "get_log_path", "parse_level", "HOVER_LOGGERS"]

_DEFAULT_LOG_DIR = Path.home() / ".lorelink" / "logs"
_LOG_FILE_NAME = "lorelink.log"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "qasync", "bs4")
HOVER_LOGGERS: tuple[str, ...] = (
    "lorelink.ui.domain.tooltip_stack",
    "lorelink.ui.domain.text_processor",
    "lorelink.ui.scheduling",
)
_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    trace_hover: bool = False,
    force: bool = False,
) -> Path:
    """Configure root logging with a rotating ``lorelink.log`` and an optional console."""

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _tune_external_loggers(level)
    _tune_hover_loggers(level, trace_hover)

    _CONFIGURED = True
    _LOG_PATH = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    """Translate ``"debug"``/``"WARNING"``/``10`` style values into a logging level."""

    if value is None:
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    return resolved if isinstance(resolved, int) else default


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("LORELINK_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()


def _tune_external_loggers(root_level: int) -> None:
    quiet_level = logging.WARNING if root_level < logging.WARNING else root_level
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)


def _tune_hover_loggers(root_level: int, trace: bool) -> None:
    # NOTSET defers to the root level, so tracing shows hover transitions at DEBUG.
    hover_level = logging.NOTSET if trace else max(root_level, logging.INFO)
    for logger_name in HOVER_LOGGERS:
        logging.getLogger(logger_name).setLevel(hover_level)
