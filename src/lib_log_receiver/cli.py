"""Click command-line interface for the log receivers.

Purpose
-------
Let operators decode log files and run network or database receivers from a
shell, printing every delivered batch through :class:`RichConsoleListener`.

Contents
--------
* :func:`cli` - root group holding the shared options.
* ``info``, ``decode``, ``listen-tcp``, ``listen-udp``, ``listen-json``,
  ``poll-db`` commands.
* :func:`main` - console-script entry point running through
  :mod:`lib_cli_exit_tools`.

System Role
-----------
Outermost layer: it resolves :class:`ReceiverSettings` from options and the
environment, builds receivers, and leaves every decoding and delivery
decision to the inner layers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import Any

import click
import lib_cli_exit_tools
from rich.console import Console
from rich.logging import RichHandler
from sqlalchemy import create_engine
from sqlalchemy.exc import ArgumentError

from . import __init__conf__
from . import config as receiver_config
from . import summary_info
from .adapters.console.rich_console import RichConsoleListener
from .adapters.queue import OVERFLOW_POLICIES
from .adapters.xml import DECODERS
from .application.use_cases.shutdown import create_shutdown
from .receivers import DBReceiver, JsonReceiver, Receiver, UDPReceiver, XMLFileReceiver, XMLSocketReceiver
from .receivers.db import DEFAULT_REFRESH_MILLIS
from .receivers.json_socket import DEFAULT_PORT as JSON_DEFAULT_PORT
from .receivers.tcp import DEFAULT_PORT


LOGGER = logging.getLogger(__name__)

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_LEVEL_NAMES = ["TRACE", "DEBUG", "INFO", "WARN", "ERROR", "FATAL"]
_DIALECT_OPTION = click.option(
    "--dialect",
    type=click.Choice(sorted(DECODERS)),
    default="log4j",
    show_default=True,
    help="XML dialect of the incoming events.",
)


def _configure_logging(verbose: int) -> None:
    """Route the library's own diagnostics to stderr through Rich."""

    if verbose <= 0:
        return
    level = logging.INFO if verbose == 1 else logging.DEBUG
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    root = logging.getLogger("lib_log_receiver")
    root.setLevel(level)
    if not any(isinstance(existing, RichHandler) for existing in root.handlers):
        root.addHandler(handler)


def _parse_properties(values: Sequence[str]) -> dict[str, str]:
    """Turn ``key=value`` option values into a dictionary.

    Examples
    --------
    >>> _parse_properties(["application=billing", "zone=eu=1"])
    {'application': 'billing', 'zone': 'eu=1'}
    """

    properties: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--property")
        properties[key.strip()] = value
    return properties


def _settings(ctx: click.Context) -> receiver_config.ReceiverSettings:
    return ctx.obj["settings"]


def _listener(ctx: click.Context) -> RichConsoleListener:
    return RichConsoleListener(no_color=ctx.obj["no_color"])


def _serve(receivers: Sequence[Receiver], duration: float | None) -> None:
    """Start ``receivers`` and block until interrupted or ``duration`` elapses."""

    shutdown = create_shutdown(receivers)
    stop = threading.Event()
    try:
        for receiver in receivers:
            receiver.start()
        stop.wait(duration)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutting down receivers")
    finally:
        failed = shutdown()
    if failed:
        raise click.ClickException(f"receivers failed to shut down: {', '.join(failed)}")


@click.group(
    help="Receive, decode, and print batched log events.",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=True,
)
@click.version_option(
    version=__init__conf__.version,
    prog_name=__init__conf__.shell_command,
    message=f"{__init__conf__.shell_command} version {__init__conf__.version}",
)
@click.option(
    "--use-dotenv/--no-use-dotenv",
    default=None,
    help=f"Load the nearest .env before reading settings (env: {receiver_config.DOTENV_ENV_VAR}).",
)
@click.option(
    "--traceback/--no-traceback",
    default=None,
    help="Show full Python tracebacks on errors.",
)
@click.option("--threshold", type=click.Choice(_LEVEL_NAMES, case_sensitive=False), default=None, help="Lowest level accepted.")
@click.option("--queue-interval", type=click.IntRange(min=0), default=None, help="Batch delivery interval in milliseconds.")
@click.option("--queue-maxsize", type=click.IntRange(min=1), default=None, help="Bound on pending events per receiver.")
@click.option("--overflow-policy", type=click.Choice(sorted(OVERFLOW_POLICIES)), default=None, help="Policy when the queue is full.")
@click.option("--no-color", is_flag=True, default=False, help="Print events without colour.")
@click.option("-v", "--verbose", count=True, help="Log receiver diagnostics to stderr (-vv for debug).")
@click.pass_context
def cli(
    ctx: click.Context,
    use_dotenv: bool | None,
    traceback: bool | None,
    threshold: str | None,
    queue_interval: int | None,
    queue_maxsize: int | None,
    overflow_policy: str | None,
    no_color: bool,
    verbose: int,
) -> None:
    """Resolve shared settings; print the metadata banner without a subcommand."""

    if traceback is not None:
        lib_cli_exit_tools.config.traceback = traceback
        lib_cli_exit_tools.config.traceback_force_color = traceback
    if receiver_config.dotenv_requested(use_dotenv):
        receiver_config.enable_dotenv()
    _configure_logging(verbose)
    try:
        settings = receiver_config.ReceiverSettings.from_env(
            threshold=threshold,
            queue_interval=queue_interval,
            queue_maxsize=queue_maxsize,
            overflow_policy=overflow_policy,
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    ctx.ensure_object(dict)
    ctx.obj.update(settings=settings, no_color=no_color)
    if ctx.invoked_subcommand is None:
        click.echo(summary_info(), nl=False)


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print package metadata."""

    click.echo(summary_info(), nl=False)


@cli.command("decode", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("locator")
@_DIALECT_OPTION
@click.option("--property", "properties", multiple=True, metavar="KEY=VALUE", help="Property added to every event.")
@click.option("--chunk-lines", type=click.IntRange(min=1), default=None, help="Lines per decoder chunk.")
@click.option("--tail", is_flag=True, default=False, help="Keep following the file as it grows.")
@click.option("--duration", type=click.FloatRange(min=0), default=None, help="Seconds to follow in --tail mode.")
@click.pass_context
def cli_decode(
    ctx: click.Context,
    locator: str,
    dialect: str,
    properties: tuple[str, ...],
    chunk_lines: int | None,
    tail: bool,
    duration: float | None,
) -> None:
    """Decode a log file, zip archive, or URL and print its events."""

    settings = _settings(ctx)
    decoder_cls = DECODERS[dialect]
    lines = chunk_lines or settings.chunk_lines
    listener = _listener(ctx)
    receiver = XMLFileReceiver(
        locator=locator,
        decoder_factory=lambda: decoder_cls(chunk_lines=lines),
        additional_properties=_parse_properties(properties),
        tail=tail,
        listeners=[listener],
        **settings.receiver_kwargs(),
    )
    if tail:
        _serve([receiver], duration)
        return
    receiver.start()
    try:
        receiver.finished.wait()
        receiver.queue.wait_until_idle()
    finally:
        receiver.shutdown()
    if receiver.error is not None:
        raise click.ClickException(f"could not decode {locator}: {receiver.error}")
    LOGGER.info("Printed %d events from %s", listener.events_rendered, locator)


@cli.command("listen-tcp", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", type=click.IntRange(0, 65535), default=DEFAULT_PORT, show_default=True)
@_DIALECT_OPTION
@click.option("--duration", type=click.FloatRange(min=0), default=None, help="Seconds to listen before stopping.")
@click.pass_context
def cli_listen_tcp(ctx: click.Context, host: str, port: int, dialect: str, duration: float | None) -> None:
    """Accept streamed XML events over TCP."""

    receiver = XMLSocketReceiver(
        host=host,
        port=port,
        decoder_factory=DECODERS[dialect],
        listeners=[_listener(ctx)],
        **_settings(ctx).receiver_kwargs(),
    )
    _serve([receiver], duration)


@cli.command("listen-udp", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", type=click.IntRange(0, 65535), required=True)
@_DIALECT_OPTION
@click.option("--duration", type=click.FloatRange(min=0), default=None, help="Seconds to listen before stopping.")
@click.pass_context
def cli_listen_udp(ctx: click.Context, host: str, port: int, dialect: str, duration: float | None) -> None:
    """Receive XML events in UDP datagrams."""

    receiver = UDPReceiver(
        host=host,
        port=port,
        decoder_factory=DECODERS[dialect],
        listeners=[_listener(ctx)],
        **_settings(ctx).receiver_kwargs(),
    )
    _serve([receiver], duration)


@cli.command("listen-json", context_settings=CLICK_CONTEXT_SETTINGS)
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", type=click.IntRange(0, 65535), default=JSON_DEFAULT_PORT, show_default=True)
@click.option("--duration", type=click.FloatRange(min=0), default=None, help="Seconds to listen before stopping.")
@click.pass_context
def cli_listen_json(ctx: click.Context, host: str, port: int, duration: float | None) -> None:
    """Accept newline-delimited ECS JSON events over TCP."""

    receiver = JsonReceiver(
        host=host,
        port=port,
        listeners=[_listener(ctx)],
        **_settings(ctx).receiver_kwargs(),
    )
    _serve([receiver], duration)


@cli.command("poll-db", context_settings=CLICK_CONTEXT_SETTINGS)
@click.argument("url")
@click.option("--refresh-millis", type=click.IntRange(min=1), default=DEFAULT_REFRESH_MILLIS, show_default=True)
@click.option("--duration", type=click.FloatRange(min=0), default=None, help="Seconds to poll before stopping.")
@click.pass_context
def cli_poll_db(ctx: click.Context, url: str, refresh_millis: int, duration: float | None) -> None:
    """Poll log4j DBAppender tables reachable through a SQLAlchemy URL."""

    try:
        engine = create_engine(url)
    except ArgumentError as exc:
        raise click.BadParameter(str(exc), param_hint="URL") from exc
    receiver = DBReceiver(
        engine=engine,
        refresh_millis=refresh_millis,
        listeners=[_listener(ctx)],
        **_settings(ctx).receiver_kwargs(),
    )
    try:
        _serve([receiver], duration)
    finally:
        engine.dispose()


def main(argv: Sequence[str] | None = None, *, restore_traceback: bool = True) -> int:
    """Run the CLI through :func:`lib_cli_exit_tools.run_cli` and return its exit code.

    Traceback preferences changed by ``--traceback`` are restored afterwards
    so embedding callers keep their own configuration.
    """

    previous: tuple[Any, Any] = (
        getattr(lib_cli_exit_tools.config, "traceback", False),
        getattr(lib_cli_exit_tools.config, "traceback_force_color", False),
    )
    try:
        return lib_cli_exit_tools.run_cli(
            cli,
            argv=list(argv) if argv is not None else None,
            prog_name=__init__conf__.shell_command,
        )
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback, lib_cli_exit_tools.config.traceback_force_color = previous


__all__ = ["cli", "main"]
