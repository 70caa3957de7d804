"""Auth commands -- authorization URL, login and token refresh.

Provides the ``dbxteam auth`` sub-command group. Client credentials come
from the resolved configuration (see :func:`dbxteam.config.resolve_config`).

Typical workflow::

    dbxteam auth url                      # print the URL to open
    dbxteam auth login > token.json       # authorize and save the tokens
    dbxteam auth refresh --refresh-token "$REFRESH"
"""

from __future__ import annotations

import json
from typing import Optional

import typer

from dbxteam.exceptions import DbxTeamError
from dbxteam.output import error, print_data, success, suggest


auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("url")
def auth_url(ctx: typer.Context) -> None:
    """Print the authorization URL without starting a listener.

    Example::

        dbxteam auth url
    """
    from dbxteam.auth import AuthService
    from dbxteam.config import require_credentials, resolve_config

    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None)
        client_id, client_secret = require_credentials(config)
        service = AuthService(client_id, client_secret, config.redirect_uri, scope=config.scopes)
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_data(service.build_authorization_url(config.state))


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    redirect_uri: Optional[str] = typer.Option(
        None, "--redirect-uri", help="Redirect URI registered for the app."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for the browser redirect."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Do not open the browser automatically."
    ),
) -> None:
    """Authorize the app and print the token response as JSON.

    The JSON goes to stdout so it can be redirected to a file; all prompts
    and status messages go to stderr.

    Example::

        dbxteam auth login > token.json
    """
    from dbxteam.auth import authorize
    from dbxteam.config import resolve_config

    overrides = {
        "redirect_uri": redirect_uri,
        "callback_timeout": timeout,
        "open_browser": False if no_browser else None,
    }
    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None, overrides)
        token = authorize(config)
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_data(json.dumps(token.to_dict(), indent=2))
    success("Token exchange successful.")
    if token.refresh_token:
        suggest("Refresh later: dbxteam auth refresh --refresh-token <refresh_token>")


@auth_app.command("refresh")
def auth_refresh(
    ctx: typer.Context,
    refresh_token: str = typer.Option(
        ...,
        "--refresh-token",
        envvar="DBXTEAM_REFRESH_TOKEN",
        help="Refresh token from a previous login.",
    ),
) -> None:
    """Exchange a refresh token for a new access token and print it as JSON.

    Example::

        dbxteam auth refresh --refresh-token "$REFRESH"
    """
    from dbxteam.auth import AuthService
    from dbxteam.config import require_credentials, resolve_config

    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None)
        client_id, client_secret = require_credentials(config)
        service = AuthService(
            client_id,
            client_secret,
            config.redirect_uri,
            scope=config.scopes,
            timeout=config.request.timeout,
        )
        token = service.refresh_access_token(refresh_token)
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_data(json.dumps(token.to_dict(), indent=2))
