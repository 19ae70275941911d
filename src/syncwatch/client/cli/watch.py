"""Watch command for syncwatch CLI.

Commands:
- watch: Run a change listener in the foreground and print invalidations
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from syncwatch.client.cli.config import get_state_db, load_config, setup_logging

if TYPE_CHECKING:
    from syncwatch.client.api import DriveClient
    from syncwatch.client.feed import ChangeSource, InvalidationDispatcher
    from syncwatch.core.types import EntryType

logger = logging.getLogger(__name__)

PROVIDERS = ("drive", "drive-activity", "minio")
DEFAULT_INTERVAL = 60.0


def print_invalidation(path: str, entry_type: EntryType) -> None:
    """Cache callback printing "<type> <path>" per invalidation."""
    click.echo(f"{entry_type.value} {path}")


def build_source(
    provider: str,
    config: dict[str, Any],
    dispatcher: InvalidationDispatcher,
) -> tuple[ChangeSource, DriveClient | None]:
    """Create the change source of a provider from the config file sections.

    Returns:
        The source and, for Drive providers, the HTTP client to close.

    Raises:
        ValueError: If the provider section is missing or incomplete.
    """
    from syncwatch.client.api import DriveClient
    from syncwatch.client.feed import (
        DriveActivitySource,
        DriveChangesSource,
        MinioMQTTSource,
        Pacer,
        ParentResolver,
    )
    from syncwatch.core.config import BrokerConfig, DriveConfig

    if provider == "minio":
        section = config.get("minio") or {}
        if not section.get("broker_url"):
            raise ValueError("minio.broker_url is not configured")
        return MinioMQTTSource(BrokerConfig.from_dict(section), dispatcher), None

    section = config.get("drive") or {}
    if not section.get("token"):
        raise ValueError("drive.token is not configured")
    client = DriveClient(DriveConfig.from_dict(section))
    pacer = Pacer()
    if provider == "drive-activity":
        resolver = ParentResolver(client, pacer)
        return DriveActivitySource(client, pacer, dispatcher, resolver), client
    return DriveChangesSource(client, pacer, dispatcher), client


@click.command()
@click.argument("provider", type=click.Choice(PROVIDERS))
@click.option(
    "--interval",
    "-i",
    type=float,
    default=DEFAULT_INTERVAL,
    show_default=True,
    help="Poll interval in seconds (push providers only need it above 0).",
)
@click.option(
    "--dircache",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON snapshot of the directory cache (path -> item ID).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def watch(provider: str, interval: float, dircache: Path | None, verbose: bool) -> None:
    """Listen to PROVIDER's change feed and print each invalidated path.

    Runs until interrupted with Ctrl+C. Pull cursors are persisted, so a
    later run resumes where this one stopped.
    """
    from syncwatch.client.dircache import DirCacheError, DirCacheSnapshot
    from syncwatch.client.feed import InvalidationDispatcher, ListenerController
    from syncwatch.client.state import CursorStore
    from syncwatch.core.types import ListenerState

    setup_logging(verbose)

    if interval <= 0:
        click.echo("Error: --interval must be greater than 0", err=True)
        sys.exit(1)

    snapshot = None
    if dircache is not None:
        try:
            snapshot = DirCacheSnapshot.load(dircache)
        except DirCacheError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    elif provider != "minio":
        logger.warning("No directory cache given, only root level paths can be resolved")

    dispatcher = InvalidationDispatcher(print_invalidation, snapshot)
    try:
        source, client = build_source(provider, load_config(), dispatcher)
    except ValueError as e:
        click.echo(f"Error: {e}. Run 'syncwatch config set' first.", err=True)
        sys.exit(1)

    store = CursorStore(get_state_db())
    controller = ListenerController(source, store)
    controller.start()
    controller.configure(interval)
    click.echo(f"Watching {provider} (Ctrl+C to stop)", err=True)

    try:
        while not controller.wait_for_state(ListenerState.STOPPED, timeout=1.0):
            pass
    except KeyboardInterrupt:
        click.echo("\nStopping...", err=True)
    finally:
        controller.close()
        store.close()
        if client is not None:
            client.close()
