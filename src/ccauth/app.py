"""Typer application and CLI entry point for ccauth.

This module wires together the top-level Typer application and registers
the built-in commands (``login``, ``link``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands and
invokes the Typer app. :class:`~ccauth.exceptions.CcauthError` escaping a
command becomes a clean error message and the error's exit code.

See Also:
    :mod:`ccauth.config`: Settings and preference resolution.
    :mod:`ccauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any

import typer

from ccauth import __version__
from ccauth.exit_codes import EXIT_GENERIC_FAILURE

logger = logging.getLogger(__name__)


app = typer.Typer(
    name="ccauth",
    help="Sign in to container cloud instances with basic auth or SSO.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"ccauth {__version__}")
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
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~ccauth.output.OutputManager` and the
    logging handler from CLI flags.
    """
    from ccauth.output import OutputFormat, OutputManager, configure_logging, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(
        format=fmt,
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(verbose=verbose, console=output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


_registered = False


def register_commands() -> typer.Typer:
    """Attach the built-in commands to :data:`app` (once) and return it."""
    global _registered
    if not _registered:
        from ccauth.commands.config import config_app
        from ccauth.commands.link import link_command
        from ccauth.commands.login import login_command

        app.command("login")(login_command)
        app.command("link")(link_command)
        app.add_typer(config_app, name="config", help="Settings and remembered instance.")
        _registered = True
    return app


def main() -> None:
    """CLI entry point invoked by the ``ccauth`` console script.

    Unhandled :class:`~ccauth.exceptions.CcauthError` instances cause a
    clean exit with the error's ``exit_code``. Any other exception is
    printed with its traceback and exits with a generic failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        register_commands()
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from ccauth.exceptions import CcauthError
        from ccauth.output import error

        if isinstance(exc, CcauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logger.exception("Unexpected error")
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
