"""Command line entrypoint."""

from __future__ import annotations

import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType

import click

from copy_kvs import __version__
from copy_kvs.application.services import CancellationToken
from copy_kvs.bootstrap import build_copy_service
from copy_kvs.config import load_settings
from copy_kvs.domain.errors import CopyKvsError
from copy_kvs.infrastructure.checkpoints import FileCheckpointStore
from copy_kvs.logging_config import configure_logging

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

_LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False)
_CONFIG_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@contextmanager
def cancel_on_signals(cancellation: CancellationToken) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a cancellation request for the duration of a run."""

    def handler(signum: int, _frame: FrameType | None) -> None:
        cancellation.cancel(signal.Signals(signum).name)

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, previous_handler in previous.items():
            signal.signal(sig, previous_handler)


@click.group()
@click.version_option(version=__version__, prog_name="copy-kvs")
def cli() -> None:
    """Copy objects between key-value stores (S3, GridFS, PostgreSQL BLOB tables)."""


@cli.command("copy")
@click.argument("config_file", type=_CONFIG_FILE)
@click.option("--from", "from_connector", help="Connector to copy from (overrides from_connector).")
@click.option("--to", "to_connector", help="Connector to copy to (overrides to_connector).")
@click.option("--log-level", type=_LOG_LEVELS, default="INFO", show_default=True)
@click.pass_context
def copy_command(
    ctx: click.Context,
    config_file: Path,
    from_connector: str | None,
    to_connector: str | None,
    log_level: str,
) -> None:
    """Copy every object after the stored checkpoint."""

    configure_logging(log_level)
    cancellation = CancellationToken()
    try:
        settings = load_settings(
            config_file,
            from_connector=from_connector,
            to_connector=to_connector,
        )
        service = build_copy_service(settings, cancellation=cancellation)
        try:
            with cancel_on_signals(cancellation):
                report = service.copy()
        finally:
            service.close()
    except CopyKvsError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_FAILURE)

    click.echo(
        f"Copied {report.copied}, skipped {report.skipped} key(s) from "
        f"'{report.from_connector}' to '{report.to_connector}'; "
        f"last key: {report.last_key or report.resumed_from or '(none)'}"
    )
    if report.cancelled:
        ctx.exit(EXIT_INTERRUPTED)


@cli.command("checkpoint")
@click.argument("config_file", type=_CONFIG_FILE)
@click.argument("connector")
@click.pass_context
def checkpoint_command(ctx: click.Context, config_file: Path, connector: str) -> None:
    """Print the last copied key stored for CONNECTOR."""

    try:
        settings = load_settings(config_file)
        key = FileCheckpointStore().load(connector, settings.connector(connector))
    except CopyKvsError as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_FAILURE)

    click.echo(key if key is not None else "(none)")


def main() -> None:
    """Console script entrypoint."""

    cli()


__all__ = ["cli", "cancel_on_signals", "main"]
