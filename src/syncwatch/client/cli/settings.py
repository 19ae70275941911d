"""Config commands for syncwatch CLI.

Commands:
- config show: Print the configuration (secrets masked)
- config set: Set one SECTION.KEY value
"""

from __future__ import annotations

import json
import sys

import click

from syncwatch.client.cli.config import (
    SECRET_KEYS,
    SECTIONS,
    convert_value,
    get_config_file,
    load_config,
    save_config,
)


@click.group("config")
def config_group() -> None:
    """Show or change provider settings."""


@config_group.command("show")
def config_show() -> None:
    """Print the configuration file, with tokens and passwords masked."""
    config = load_config()
    if not config:
        click.echo(f"No configuration at {get_config_file()}")
        return

    masked = {
        section: {
            key: "****" if key in SECRET_KEYS and value else value
            for key, value in values.items()
        }
        if isinstance(values, dict)
        else values
        for section, values in config.items()
    }
    click.echo(json.dumps(masked, indent=2))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a config value, e.g. 'drive.token' or 'minio.broker_url'.

    Examples:

        syncwatch config set drive.root_folder_id 0AbCdEf

        syncwatch config set minio.broker_url wss://minio.example.com/mqtt
    """
    section, _, name = key.partition(".")
    if section not in SECTIONS or not name:
        sections = ", ".join(sorted(SECTIONS))
        click.echo(f"Error: Key must be SECTION.NAME with SECTION one of: {sections}", err=True)
        sys.exit(1)

    try:
        typed = convert_value(section, name, value)
    except KeyError:
        click.echo(f"Error: Unknown {section} setting: {name}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: Invalid value for {key}: {e}", err=True)
        sys.exit(1)

    config = load_config()
    config.setdefault(section, {})[name] = typed
    save_config(config)
    shown = "****" if name in SECRET_KEYS else typed
    click.echo(f"Set {key} = {shown}")
