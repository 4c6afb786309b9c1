"""The ``oauthview`` command line.

Sub-commands:

* ``profile`` -- add, list, show and remove provider profiles.
* ``authorize-url`` -- build the URL a browser session should open.
* ``intercept`` -- classify a single navigation URL.
* ``replay`` -- run a headless session over recorded navigation URLs.
* ``token`` -- exchange, inspect, refresh and revoke stored tokens.

:func:`main` is the console script. A raised
:class:`~oauthview.exceptions.OAuthViewError` becomes an error line and
its exit code. Anything else leaves a traceback in
``<data dir>/logs/crash-<timestamp>.log``.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from oauthview import __version__
from oauthview.commands.flow import authorize_url_command, intercept_command, replay_command
from oauthview.commands.profile import profile_app
from oauthview.commands.token import token_app
from oauthview.exit_codes import EXIT_GENERIC_FAILURE

_INTERRUPTED = 130

app = typer.Typer(
    name="oauthview",
    help="Embedded-browser OAuth2 sign-in: build authorize URLs, intercept redirects, manage tokens.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(profile_app, name="profile", help="Manage provider profiles.")
app.add_typer(token_app, name="token", help="Exchange, inspect, refresh and revoke tokens.")
app.command("authorize-url")(authorize_url_command)
app.command("intercept")(intercept_command)
app.command("replay")(replay_command)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"oauthview {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Print the version and exit."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Provider profile (default: OAUTHVIEW_PROFILE or config)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Write results as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Write results as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Turn colour off."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print results, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging on stderr."),
) -> None:
    """Set up output and logging, and remember the selected profile."""
    from oauthview.output import OutputFormat, OutputManager, set_output

    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, verbose=verbose)


def _configure_logging(verbose: bool) -> None:
    """Route ``oauthview.*`` debug logging to stderr under ``--verbose``.

    Without it only warnings surface, through :mod:`logging`'s last-resort
    handler.
    """
    if not verbose:
        return
    logging.basicConfig(level=logging.DEBUG, format="[debug] %(name)s: %(message)s", stream=sys.stderr)
    logging.getLogger("oauthview").setLevel(logging.DEBUG)


def _install_sigint_handler() -> None:
    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_INTERRUPTED)

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log() -> str:
    """Save the active traceback under the data directory and return its path."""
    from oauthview.config import get_data_dir

    logs = get_data_dir() / "logs"
    logs.mkdir(parents=True, exist_ok=True)
    path = logs / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(path)


def main() -> None:
    """Console-script entry point."""
    from oauthview.exceptions import OAuthViewError
    from oauthview.output import error

    _install_sigint_handler()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_INTERRUPTED)
    except OAuthViewError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception:
        error(f"Unexpected error. Debug log: {_write_crash_log()}")
        sys.exit(EXIT_GENERIC_FAILURE)
