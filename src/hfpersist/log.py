"""Logging setup: console plus an append-only log file."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_installed: list[logging.Handler] = []


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure root logging for the CLI and the daemon.

    Handlers installed by an earlier call are replaced, so this is safe
    to call more than once in one process.

    Args:
        level: Level name. ``WARN`` is accepted for ``WARNING``.
        log_file: File to append to, in addition to stderr.
    """
    level = level.upper()
    if level == "WARN":
        level = "WARNING"

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    _installed.append(console)

    file_error = None
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(formatter)
            _installed.append(file_handler)
        except OSError as exc:
            file_error = exc

    for handler in _installed:
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))

    if file_error is not None:
        logging.getLogger("hfpersist.log").warning(
            "Cannot write log file %s: %s (console only)", log_file, file_error,
        )
