"""
hfpersist CLI: archive, restore, list, daemon, start.

The main Click group loads configuration and logging once; each
command group lives in its own module and is registered through a
register function.

Entry point: hfpersist.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import DEFAULT_CONFIG_FILE, __version__
from ..config import load_config, load_fallback_config
from ..errors import ConfigInvalidError
from ..log import setup_logging
from ._common import CliContext, console

logger = logging.getLogger("hfpersist.cli")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="hfpersist")
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, show_default=True,
              type=click.Path(dir_okay=False), help="Configuration file.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@click.option("--no-restore", is_flag=True, help="Skip the automatic restore on start.")
@click.option("--no-sync", is_flag=True, help="Do not start the sync daemon on start.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool, no_restore: bool, no_sync: bool):
    """hfpersist: archive persistence for stateless containers.

    Packs configured directories into timestamped archives, keeps the
    newest few in a remote dataset, and restores the latest on start.
    Runs `start` when no command is given.
    """
    command = ctx.invoked_subcommand or "start"
    problems: list[str] = []
    try:
        config = load_config(config_path)
    except ConfigInvalidError as exc:
        console.print("[bold red]Invalid configuration:[/]")
        for problem in exc.problems:
            console.print(f"  [red]{problem}[/]")
        if command != "start":
            raise SystemExit(1)
        # The application still starts, without restore or sync.
        problems = exc.problems
        config = load_fallback_config(config_path)
        no_restore = no_sync = True

    setup_logging("DEBUG" if verbose else config.log_level, config.log_file)
    if problems:
        logger.warning("Invalid configuration, persistence disabled: %s", "; ".join(problems))

    logger.info("=== hfpersist %s ===", __version__)
    logger.info("Command: %s", command)
    logger.info("Config file: %s", config_path)

    ctx.obj = CliContext(
        config=config,
        config_path=config_path,
        verbose=verbose,
        no_restore=no_restore,
        no_sync=no_sync,
    )

    if ctx.invoked_subcommand is None:
        ctx.invoke(main.get_command(ctx, "start"))


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .archive_cmd import register_archive_commands
from .daemon import register_daemon_commands

register_archive_commands(main)
register_daemon_commands(main)
