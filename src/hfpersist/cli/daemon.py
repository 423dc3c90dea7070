"""Long-running commands: daemon, start."""

from __future__ import annotations

import logging
import os
import signal

import click

from ..errors import LaunchError
from ..launcher import launch
from ._common import CliContext, console, require_scheduler

logger = logging.getLogger("hfpersist.cli")


def register_daemon_commands(main: click.Group) -> None:
    """Register the daemon and start commands."""

    @main.command("daemon")
    @click.pass_obj
    def daemon(obj: CliContext):
        """Run the archive loop forever.

        One cycle every SYNC_INTERVAL seconds. A failed cycle is logged
        and the loop keeps going. SIGTERM or Ctrl+C stops it.
        """
        scheduler = require_scheduler(obj)

        def _handle_signal(signum, frame):
            logger.info("Received signal %s, stopping", signal.Signals(signum).name)
            scheduler.state.cancelled.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, _handle_signal)

        console.print(f"\n  [green]Sync daemon[/] for [cyan]{scheduler.store.namespace}[/]")
        console.print(f"  Interval: {obj.config.sync_interval_seconds}s | Keep: {obj.config.max_archives}")
        console.print(f"  PID: {os.getpid()}\n")

        scheduler.run_forever()

    @main.command("start")
    @click.pass_obj
    def start(obj: CliContext):
        """Restore, start the sync daemon, then run APP_COMMAND.

        Without valid persistence settings the application still
        starts, just without restore or sync.
        """
        try:
            launch(
                obj.config,
                config_path=obj.config_path,
                no_restore=obj.no_restore,
                no_sync=obj.no_sync,
                verbose=obj.verbose,
            )
        except LaunchError as exc:
            console.print(f"[red]Cannot start application:[/] {exc}")
            raise SystemExit(1)
