"""Typer application and CLI entry point for vimeonet.

This module builds the top-level Typer application and registers the
built-in commands (``request``, ``cache``, ``config``). The root callback
installs the :class:`~vimeonet.output.OutputManager` and routes records
from the ``vimeonet`` logger hierarchy to stderr.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler and runs the app. A
:class:`~vimeonet.exceptions.VimeoNetError` escaping a command exits with
the error's ``exit_code``. Any other exception exits with
:data:`~vimeonet.exit_codes.EXIT_GENERIC_FAILURE`.

See Also:
    :mod:`vimeonet.config`: Configuration resolution.
    :mod:`vimeonet.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional

import typer

from vimeonet import __version__
from vimeonet.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="vimeonet",
    help="Execute Vimeo API requests with caching, retry and pagination.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

_LOGGER_NAME = "vimeonet"


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"vimeonet {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="API base URL (overrides config and environment)."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~vimeonet.output.OutputManager`, attaches
    its logging handler to the ``vimeonet`` logger and stores shared options
    in ``ctx.obj``.
    """
    from vimeonet.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    _configure_logging(output.logging_handler(), verbose)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url
    ctx.obj["verbose"] = verbose


def _configure_logging(handler: logging.Handler, verbose: bool) -> None:
    """Replace the handlers of the ``vimeonet`` logger with *handler*."""
    logger = logging.getLogger(_LOGGER_NAME)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


# ------------------------------------------------------------------ #
# Built-in commands
# ------------------------------------------------------------------ #

from vimeonet.commands.cache import cache_app  # noqa: E402
from vimeonet.commands.config import config_app  # noqa: E402
from vimeonet.commands.request import request_command  # noqa: E402

app.command("request")(request_command)
app.add_typer(cache_app, name="cache", help="Inspect and clear the response cache.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``vimeonet`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
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
        from vimeonet.exceptions import VimeoNetError
        from vimeonet.output import error

        if isinstance(exc, VimeoNetError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logging.getLogger(_LOGGER_NAME).exception("Unexpected error")
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
