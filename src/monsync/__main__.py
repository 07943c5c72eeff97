"""CLI entry point for monsync.

Provides commands for initializing the state store, inspecting
configuration, previewing remote requests and upgrading state.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import click

from monsync import __version__


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """Monitor synchronization engine.

    Reconciles declared uptime monitors against an eventually
    consistent remote monitoring API and keeps versioned state.
    """
    pass


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
def init(config: Path | None) -> None:
    """Initialize the state database.

    Creates the data directory and the database schema.
    """
    from monsync.config.loader import load_config
    from monsync.storage.state_store import StateStore

    cfg = load_config(config)

    async def main() -> None:
        db_path = cfg.storage.state_db_path
        cfg.storage.data_directory.mkdir(parents=True, exist_ok=True)

        store = StateStore(db_path)
        await store.initialize()
        await store.close()

        click.echo(f"State database initialized at {db_path}")

    asyncio.run(main())


@cli.command("show-config")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
def show_config(config: Path | None) -> None:
    """Print the effective configuration.

    Merges the configuration file with MONSYNC_* environment
    variables and prints the result as JSON.
    """
    from monsync.config.loader import load_config

    cfg = load_config(config)
    click.echo(cfg.model_dump_json(indent=2))


@cli.command("build-request")
@click.argument("monitor_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--prior",
    "-p",
    type=click.Path(exists=True, path_type=Path),
    help="Versioned state record (JSON) to build an update against",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
def build_request(monitor_file: Path, prior: Path | None, config: Path | None) -> None:
    """Show the payload a monitor declaration would send.

    MONITOR_FILE is a YAML mapping of monitor fields. Without --prior a
    create payload is built; with it, an update payload.
    """
    from monsync.config.loader import load_config, read_yaml_mapping
    from monsync.errors import StateMigrationError, ValidationError
    from monsync.migrations import default_chain
    from monsync.models.codec import desired_from_mapping, state_from_attributes
    from monsync.reconcile.builder import RequestBuilder
    from monsync.utils.logging import configure_logging

    cfg = load_config(config)
    configure_logging(cfg.logging)

    try:
        desired = desired_from_mapping(read_yaml_mapping(monitor_file, "monitor file"))
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    prior_state = None
    if prior is not None:
        try:
            upgraded = default_chain().upgrade(json.loads(prior.read_text()))
        except (json.JSONDecodeError, StateMigrationError) as e:
            raise click.ClickException(f"Invalid prior state: {e}") from e
        prior_state = state_from_attributes(upgraded.attributes)

    try:
        built = RequestBuilder(cfg.defaults.timeout_seconds).build(desired, prior_state)
    except ValidationError as e:
        for diagnostic in e.diagnostics:
            click.echo(str(diagnostic), err=True)
        raise click.ClickException("Monitor declaration is invalid") from e

    for diagnostic in built.diagnostics:
        click.echo(str(diagnostic), err=True)
    _echo_json(built.request.to_payload())


@cli.command("upgrade-state")
@click.argument("state_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--in-place",
    "-i",
    is_flag=True,
    help="Rewrite STATE_FILE instead of printing the upgraded record",
)
def upgrade_state(state_file: Path, in_place: bool) -> None:
    """Upgrade a versioned state record to the current schema.

    STATE_FILE holds {"schema_version": N, "attributes": {...}}.
    """
    from monsync.errors import StateMigrationError
    from monsync.migrations import default_chain

    try:
        record = json.loads(state_file.read_text())
    except json.JSONDecodeError as e:
        raise click.ClickException(f"State file is not valid JSON: {e}") from e

    try:
        result = default_chain().upgrade(record)
    except StateMigrationError as e:
        raise click.ClickException(str(e)) from e

    for warning in result.warnings:
        click.echo(f"warning: {warning}", err=True)

    if in_place:
        state_file.write_text(json.dumps(result.record, indent=2, sort_keys=True) + "\n")
        click.echo(f"Upgraded {state_file} to schema version {result.version}")
    else:
        _echo_json(result.record)


@cli.command("show-state")
@click.argument("address", required=False)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
def show_state(address: str | None, config: Path | None) -> None:
    """Show stored monitor state.

    Without ADDRESS, lists every stored address. With ADDRESS, prints
    that monitor's state, upgrading it first if it is stale.
    """
    from monsync.config.loader import load_config
    from monsync.errors import StateMigrationError
    from monsync.models.codec import state_to_attributes
    from monsync.storage.state_store import StateStore

    cfg = load_config(config)

    async def main() -> None:
        db_path = cfg.storage.state_db_path

        if not db_path.exists():
            click.echo("State database not initialized. Run 'monsync init' first.")
            return

        store = StateStore(db_path)
        await store.initialize()
        try:
            if address is None:
                addresses = await store.list_addresses()
                if not addresses:
                    click.echo("No monitors in state.")
                for item in addresses:
                    click.echo(item)
                return

            try:
                state = await store.load(address)
            except StateMigrationError as e:
                raise click.ClickException(str(e)) from e
            if state is None:
                click.echo(f"No state for {address}")
                return
            _echo_json(state_to_attributes(state))
        finally:
            await store.close()

    asyncio.run(main())


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
