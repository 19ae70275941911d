"""Cursor commands for syncwatch CLI.

Commands:
- cursor show: List persisted feed cursors
- cursor reset: Forget a source's cursor (next run starts from "now")
"""

from __future__ import annotations

import sys
from datetime import datetime

import click

from syncwatch.client.cli.config import get_state_db
from syncwatch.client.state import CursorStore


@click.group("cursor")
def cursor_group() -> None:
    """Inspect or reset persisted feed cursors."""


@cursor_group.command("show")
@click.argument("source", required=False)
def cursor_show(source: str | None) -> None:
    """Show the cursor of SOURCE, or of every source."""
    with CursorStore(get_state_db()) as store:
        if source:
            entry = store.get_entry(source)
            entries = [entry] if entry else []
        else:
            entries = store.list_cursors()

    if not entries:
        if source:
            click.echo(f"Error: No cursor stored for {source}", err=True)
            sys.exit(1)
        click.echo("No cursors stored.")
        return

    for entry in entries:
        updated = datetime.fromtimestamp(entry.updated_at).strftime("%Y-%m-%d %H:%M:%S")
        click.echo(f"{entry.source}\t{entry.value}\t{updated}")


@cursor_group.command("reset")
@click.argument("source")
def cursor_reset(source: str) -> None:
    """Forget the cursor of SOURCE.

    Changes made before the next run are not replayed: the listener starts
    again from a fresh cursor.
    """
    with CursorStore(get_state_db()) as store:
        removed = store.delete(source)
    if removed:
        click.echo(f"Cursor reset for {source}")
    else:
        click.echo(f"No cursor stored for {source}")
