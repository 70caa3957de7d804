"""Typer application and CLI entry point for dbxteam.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``run``, ``auth``, ``team``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`dbxteam.config`: Configuration resolution.
    :mod:`dbxteam.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from dbxteam import __version__
from dbxteam.commands.auth import auth_app
from dbxteam.commands.config import config_app
from dbxteam.commands.run import run_command
from dbxteam.commands.team import team_app
from dbxteam.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="dbxteam",
    help="Authorize against Dropbox Business and print team information.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("run")(run_command)
app.add_typer(auth_app, name="auth", help="Authorization and tokens.")
app.add_typer(team_app, name="team", help="Team information with an existing access token.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"dbxteam {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool, console: Console) -> None:
    """Route library log records to stderr; DEBUG and up with ``--verbose``."""
    root = logging.getLogger("dbxteam")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = False

    handler = RichHandler(console=console, show_path=False, show_time=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


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
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON config file to load."
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

    Initialises the global :class:`~dbxteam.output.OutputManager` and the
    ``dbxteam`` logger from CLI flags, and stores the ``--config`` path in
    ``ctx.obj`` for sub-commands.
    """
    from dbxteam.output import OutputFormat, OutputManager, set_output

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
    _configure_logging(verbose, output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from dbxteam.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``dbxteam`` console script.

    Unhandled :class:`~dbxteam.exceptions.DbxTeamError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

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
        from dbxteam.exceptions import DbxTeamError
        from dbxteam.output import error

        if isinstance(exc, DbxTeamError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
