"""Run command -- the end-to-end Dropbox Business demo.

Authorizes the app (local redirect capture with manual fallback), exchanges
the code for tokens and prints the team's info, members and recent events.

Example::

    dbxteam run
    dbxteam run --redirect-uri http://localhost:45678/callback --timeout 60
"""

from __future__ import annotations

from typing import Optional

import typer

from dbxteam.exceptions import DbxTeamError
from dbxteam.exit_codes import EXIT_GENERIC_FAILURE
from dbxteam.output import error, info, success


def run_command(
    ctx: typer.Context,
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="Dropbox app key."
    ),
    client_secret: Optional[str] = typer.Option(
        None, "--client-secret", help="Dropbox app secret."
    ),
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Redirect URI registered for the app."
    ),
    scopes: Optional[str] = typer.Option(
        None, "--scopes", help="Space-separated OAuth scopes."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for the browser redirect."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Do not open the browser automatically."
    ),
    members_limit: int = typer.Option(
        100, "--members-limit", min=1, max=1000, help="Members to list."
    ),
    events_limit: int = typer.Option(
        20, "--events-limit", min=1, max=1000, help="Events to list."
    ),
) -> None:
    """Authorize with Dropbox and print team info, members and events.

    Exits non-zero if authorization fails or any team section could not be
    fetched; the remaining sections are still printed.
    """
    from dbxteam.auth import authorize
    from dbxteam.client import DropboxClient
    from dbxteam.config import resolve_config
    from dbxteam.service import TeamService

    overrides = {
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
        "scopes": scopes,
        "callback_timeout": timeout,
        "open_browser": False if no_browser else None,
    }

    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None, overrides)
        token = authorize(config)
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    success("Token exchange successful.")
    info(f"Scopes returned: {token.scope or 'N/A'}")

    with DropboxClient(config.request) as client:
        service = TeamService(client, members_limit=members_limit, events_limit=events_limit)
        failed = service.run_all(token.access_token)

    if failed:
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
