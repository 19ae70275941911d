"""Command-line interface for syncwatch.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config show / config set: Provider settings
- cursor show / cursor reset: Persisted feed cursors
- watch: Run a change listener and print invalidations
"""

from __future__ import annotations

import click

from syncwatch.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_state_db,
    load_config,
    save_config,
    setup_logging,
)
from syncwatch.client.cli.cursor import cursor_group
from syncwatch.client.cli.settings import config_group
from syncwatch.client.cli.watch import watch


@click.group()
@click.version_option(package_name="syncwatch")
def cli() -> None:
    """syncwatch - Change-feed driven directory cache invalidation."""


# Settings commands
cli.add_command(config_group)
cli.add_command(cursor_group)

# Listener command
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_state_db",
    "load_config",
    "save_config",
    "setup_logging",
]
