"""
Startup hand-off: restore, spawn the sync daemon, exec the application.

The daemon runs as its own process in its own session so it outlives
the ``exec`` that turns this process into the application. The two
share nothing but the filesystem and the remote store.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from pathlib import Path
from typing import Optional

from .config import PersistenceConfig
from .errors import ConfigInvalidError, LaunchError
from .scheduler import SyncScheduler
from .store import create_store

logger = logging.getLogger("hfpersist.launcher")


def daemon_command(config_path: Optional[str | Path], verbose: bool = False) -> list[str]:
    """Command line that runs the sync loop in a child process."""
    cmd = [sys.executable, "-m", "hfpersist"]
    if config_path:
        cmd += ["--config", str(config_path)]
    if verbose:
        cmd.append("--verbose")
    cmd.append("daemon")
    return cmd


def spawn_daemon(config_path: Optional[str | Path], verbose: bool = False) -> Optional[int]:
    """Start the sync daemon as a detached child process.

    Returns:
        The child PID, or None if it could not be started.
    """
    cmd = daemon_command(config_path, verbose)
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        logger.error("Failed to start sync daemon: %s", exc)
        return None

    logger.info("Sync daemon started, PID %d", proc.pid)
    return proc.pid


def exec_app(app_command: str) -> None:
    """Replace the current process with the application.

    Raises:
        LaunchError: If the command is empty or cannot be executed.
    """
    argv = shlex.split(app_command)
    if not argv:
        raise LaunchError("APP_COMMAND is empty")

    logger.info("Starting application: %s", app_command)
    for handler in logging.getLogger().handlers:
        handler.flush()
    try:
        os.execvp(argv[0], argv)
    except OSError as exc:
        raise LaunchError(f"cannot execute {argv[0]!r}: {exc}") from exc


def launch(
    config: PersistenceConfig,
    config_path: Optional[str | Path] = None,
    no_restore: bool = False,
    no_sync: bool = False,
    verbose: bool = False,
) -> None:
    """Run the ``start`` sequence and hand off to the application.

    Missing credentials do not stop the application; it starts without
    persistence instead.

    Args:
        config: Loaded configuration.
        config_path: Config file, passed on to the daemon process.
        no_restore: Skip the startup restore.
        no_sync: Do not start the sync daemon.
        verbose: Run the daemon with debug logging.
    """
    try:
        config.validate_persistence()
        persistence = True
    except ConfigInvalidError as exc:
        logger.warning("Persistence disabled, starting application without it: %s", exc)
        persistence = False

    if persistence:
        if config.enable_auto_restore and not no_restore:
            scheduler = SyncScheduler(config, create_store(config))
            scheduler.startup_restore()
        else:
            logger.info("Automatic restore disabled")

        if config.enable_auto_sync and not no_sync:
            spawn_daemon(config_path, verbose)
        else:
            logger.info("Automatic sync disabled")

    exec_app(config.app_command)
