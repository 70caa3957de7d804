"""Team commands -- print one team section with an existing access token.

Each command takes ``--access-token`` (or ``DBXTEAM_ACCESS_TOKEN``) and
prints the same output as the corresponding section of ``dbxteam run``.

Example::

    export DBXTEAM_ACCESS_TOKEN=sl.XXXX
    dbxteam team info
    dbxteam --json team members --limit 10
"""

from __future__ import annotations

from typing import Any, Callable

import typer

from dbxteam.exceptions import DbxTeamError
from dbxteam.output import error


team_app = typer.Typer(no_args_is_help=True)

_TOKEN_OPTION = typer.Option(
    ...,
    "--access-token",
    envvar="DBXTEAM_ACCESS_TOKEN",
    help="OAuth2 access token.",
)


def _run_section(ctx: typer.Context, section: Callable[[Any], Any]) -> None:
    from dbxteam.client import DropboxClient
    from dbxteam.config import resolve_config
    from dbxteam.service import TeamService

    try:
        config = resolve_config(ctx.obj.get("config_path") if ctx.obj else None)
        with DropboxClient(config.request) as client:
            section(TeamService(client))
    except DbxTeamError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@team_app.command("info")
def team_info(ctx: typer.Context, access_token: str = _TOKEN_OPTION) -> None:
    """Print the team id, name and sharing policies."""
    _run_section(ctx, lambda service: service.fetch_team_info(access_token))


@team_app.command("members")
def team_members(
    ctx: typer.Context,
    access_token: str = _TOKEN_OPTION,
    limit: int = typer.Option(100, "--limit", min=1, max=1000, help="Members to list."),
) -> None:
    """List team members with their status."""
    _run_section(ctx, lambda service: service.fetch_members(access_token, limit=limit))


@team_app.command("events")
def team_events(
    ctx: typer.Context,
    access_token: str = _TOKEN_OPTION,
    limit: int = typer.Option(20, "--limit", min=1, max=1000, help="Events to list."),
) -> None:
    """List the most recent audit log events."""
    _run_section(ctx, lambda service: service.fetch_events(access_token, limit=limit))
