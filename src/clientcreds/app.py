"""Typer application and CLI entry point for clientcreds.

This module wires together the top-level Typer application and registers the
``token`` and ``request`` commands. :func:`main` is the console-script entry
point declared in ``pyproject.toml``.

See Also:
    :mod:`clientcreds.config`: Settings resolution used by the commands.
    :mod:`clientcreds.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from clientcreds import __version__
from clientcreds.commands.request import request_command
from clientcreds.commands.token import token_command
from clientcreds.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="clientcreds",
    help="OAuth 2.0 client credentials tokens for HTTP requests.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("token")(token_command)
app.command("request")(request_command)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"clientcreds {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and library logs."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~clientcreds.output.OutputManager` from
    CLI flags and routes library logging to stderr.
    """
    from clientcreds.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _configure_logging(output.stderr_console, verbose)


def _configure_logging(console: Console, verbose: bool) -> None:
    """Send ``clientcreds.*`` log records to stderr through Rich.

    WARNING and above by default; DEBUG with ``--verbose``.
    """
    logger = logging.getLogger("clientcreds")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, show_time=False)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``clientcreds`` console script.

    Unhandled :class:`~clientcreds.exceptions.ClientCredsError` instances
    cause a clean exit with the error's ``exit_code``.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from clientcreds.exceptions import ClientCredsError
        from clientcreds.output import error

        if isinstance(exc, ClientCredsError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logging.getLogger(__name__).debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
