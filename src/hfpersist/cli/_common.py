"""Shared utilities for the CLI command modules.

Provides the Rich console, the per-invocation context object, and the
helpers that turn configuration into ready-to-use components.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from ..config import PersistenceConfig
from ..errors import ConfigInvalidError
from ..scheduler import SyncScheduler
from ..store import create_store

console = Console()


@dataclass
class CliContext:
    """Options shared by every command."""

    config: PersistenceConfig
    config_path: Optional[str] = None
    verbose: bool = False
    no_restore: bool = False
    no_sync: bool = False


def require_scheduler(obj: CliContext) -> SyncScheduler:
    """Validate persistence settings and build the scheduler.

    Exits with status 1 when credentials are missing.
    """
    try:
        obj.config.validate_persistence()
    except ConfigInvalidError as exc:
        console.print("[bold red]Configuration validation failed:[/]")
        for problem in exc.problems:
            console.print(f"  [red]{problem}[/]")
        raise SystemExit(1)

    return SyncScheduler(obj.config, create_store(obj.config))
