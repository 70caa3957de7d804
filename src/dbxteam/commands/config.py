"""Config commands -- view and create the user configuration.

Provides the ``dbxteam config`` sub-command group. The user config lives in
the dbxteam config directory (see :func:`dbxteam.config.get_config_dir`)
and holds the Dropbox app key, secret, redirect URI and scopes.
"""

from __future__ import annotations

from typing import Optional

import typer

from dbxteam.exceptions import DbxTeamError
from dbxteam.models import DEFAULT_REDIRECT_URI, DEFAULT_SCOPES
from dbxteam.output import error, format_response, info, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration.

    Prints the config directory followed by the merged configuration (all
    layers applied) with the client secret masked.

    Example::

        dbxteam config show
        dbxteam --json config show
    """
    from dbxteam.config import get_config_dir, mask_secret, resolve_config

    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None)
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data = config.model_dump(mode="json")
    data["client_secret"] = mask_secret(data.get("client_secret"))
    info(f"Config directory: {get_config_dir()}")
    format_response(data)


@config_app.command("init")
def config_init(
    client_id: str = typer.Option(
        ..., "--client-id", prompt="Dropbox app key", help="Dropbox app key."
    ),
    client_secret: str = typer.Option(
        ...,
        "--client-secret",
        prompt="Dropbox app secret",
        hide_input=True,
        help="Dropbox app secret.",
    ),
    redirect_uri: str = typer.Option(
        DEFAULT_REDIRECT_URI,
        "--redirect-uri",
        prompt="Redirect URI",
        help="Redirect URI registered for the app.",
    ),
    scopes: Optional[str] = typer.Option(
        DEFAULT_SCOPES, "--scopes", help="Space-separated OAuth scopes."
    ),
) -> None:
    """Create or update the user config with the app credentials.

    Values not given as options are prompted for. Existing settings that are
    not covered by an option are kept.

    Example::

        dbxteam config init
        dbxteam config init --client-id KEY --client-secret SECRET \\
            --redirect-uri http://localhost:45678/callback
    """
    from pydantic import ValidationError

    from dbxteam.config import load_user_config, save_user_config
    from dbxteam.models import AppConfig

    try:
        data = load_user_config()
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data.update(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri.strip(),
        scopes=(scopes or DEFAULT_SCOPES).strip(),
    )
    try:
        config = AppConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    path = save_user_config(config)
    success(f"Configuration saved to {path}")
    suggest("Run the demo: dbxteam run")
