"""One-shot commands: archive, restore, list."""

from __future__ import annotations

import click
from rich.panel import Panel

from ..errors import ArchiveNotFoundError, PersistenceError
from ..models import LATEST
from ._common import CliContext, console, require_scheduler


def register_archive_commands(main: click.Group) -> None:
    """Register the one-shot archive commands."""

    @main.command("archive")
    @click.pass_obj
    def archive(obj: CliContext):
        """Run one archive cycle now: pack, upload, prune.

        Examples:

            hfpersist archive

            hfpersist -c /etc/persistence.conf archive
        """
        scheduler = require_scheduler(obj)

        try:
            result = scheduler.run_cycle()
        except PersistenceError as exc:
            console.print(f"[red]Archive failed:[/] {exc}")
            raise SystemExit(1)

        if result.dry_run:
            console.print(Panel(
                f"[bold yellow]Dry run[/], upload skipped\n"
                f"Archive: {result.archive_name}\n"
                f"Path: [cyan]{result.local_path}[/]",
                title="Archive Created",
                border_style="yellow",
            ))
            return

        pruned = ", ".join(result.pruned) if result.pruned else "none"
        console.print(Panel(
            f"[bold green]Archive uploaded[/]\n"
            f"Archive: {result.archive_name}\n"
            f"Remote: [cyan]{scheduler.store.namespace}[/]\n"
            f"Pruned: {pruned}",
            title="Archive Complete",
            border_style="green",
        ))

    @main.command("restore")
    @click.argument("target", default=LATEST, required=False)
    @click.option("--dest", "-d", default=None, type=click.Path(file_okay=False),
                  help="Restore directory (default: RESTORE_PATH).")
    @click.pass_obj
    def restore(obj: CliContext, target: str, dest: str):
        """Restore an archive: the latest one, or NAME.

        Examples:

            hfpersist restore

            hfpersist restore resilio_backup_20240101_000000.tar.gz
        """
        scheduler = require_scheduler(obj)
        dest_dir = dest or obj.config.restore_path

        try:
            name = scheduler.resolver.restore_target(target, dest_dir)
        except ArchiveNotFoundError:
            console.print("[yellow]No archives found, nothing to restore.[/]")
            raise SystemExit(1)
        except PersistenceError as exc:
            console.print(f"[red]Restore failed:[/] {exc}")
            raise SystemExit(1)

        console.print(Panel(
            f"[bold green]Restore complete[/]\n"
            f"Archive: {name}\n"
            f"Target: [cyan]{dest_dir}[/]",
            title="Restore Complete",
            border_style="green",
        ))

    @main.command("list")
    @click.pass_obj
    def list_cmd(obj: CliContext):
        """List remote archives, newest first.

        The last line is ``LATEST_BACKUP:<name>`` for scripts.
        """
        scheduler = require_scheduler(obj)

        try:
            names = scheduler.resolver.available()
        except PersistenceError as exc:
            console.print(f"[red]Listing failed:[/] {exc}")
            raise SystemExit(1)

        if not names:
            console.print("\n[dim]No archives found.[/]\n")
            return

        console.print(f"\n[bold]{len(names)}[/] archive(s) in [cyan]{scheduler.store.namespace}[/]:\n")
        for name in names:
            click.echo(name)
        click.echo(f"LATEST_BACKUP:{names[0]}")
