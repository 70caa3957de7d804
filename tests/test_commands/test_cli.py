"""CLI tests for the dbxteam command tree (run, auth, team, config) and main()."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from dbxteam import __version__
from dbxteam.app import app, main
from dbxteam.client.api_client import DropboxClient
from dbxteam.config import load_user_config
from dbxteam.exceptions import AuthError, ServerError
from dbxteam.models import TokenResponse
from dbxteam.service import EVENTS_URL, MEMBERS_LIST_URL, TEAM_INFO_URL


RESPONSES: dict[str, dict[str, Any]] = {
    TEAM_INFO_URL: {"team_id": "dbtid:AAA", "name": "Acme Corp"},
    MEMBERS_LIST_URL: {
        "members": [{"profile": {"email": "ann@acme.test", "status": {".tag": "active"}}}]
    },
    EVENTS_URL: {"events": []},
}


def _invoke(runner, *args: str, **kwargs: Any):
    return runner.invoke(app, ["--no-color", *args], **kwargs)


def _fake_post(url: str, body: Any, access_token: str) -> dict[str, Any]:
    assert access_token == "sl.token"
    return RESPONSES[url]


@pytest.fixture
def credentials(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("DBXTEAM_CLIENT_ID", "app-key")
    monkeypatch.setenv("DBXTEAM_CLIENT_SECRET", "app-secret")
    return isolated_config


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"dbxteam {__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "run" in result.output
        assert "auth" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_init_with_options(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner,
            "config",
            "init",
            "--client-id",
            "app-key",
            "--client-secret",
            "app-secret",
            "--redirect-uri",
            "http://localhost:45678/callback",
        )
        assert result.exit_code == 0, result.output
        assert "Configuration saved" in result.output
        data = load_user_config()
        assert data["client_id"] == "app-key"
        assert data["client_secret"] == "app-secret"
        assert data["redirect_uri"] == "http://localhost:45678/callback"

    def test_init_prompts(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "init", input="key\nsecret\n\n")
        assert result.exit_code == 0, result.output
        data = load_user_config()
        assert data["client_id"] == "key"
        assert data["redirect_uri"] == "https://oauth.pstmn.io/v1/callback"

    def test_show_masks_secret(self, cli_runner, credentials: Path) -> None:
        result = _invoke(cli_runner, "--plain", "config", "show")
        assert result.exit_code == 0, result.output
        assert "client_id\tapp-key" in result.output
        assert "app-secret" not in result.output
        assert "client_secret\t******cret" in result.output

    def test_show_invalid_explicit_config(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "--config", "missing.json", "config", "show")
        assert result.exit_code == 1
        assert "Config file not found" in result.output


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


class TestAuthCommands:
    def test_url(self, cli_runner, credentials: Path) -> None:
        result = _invoke(cli_runner, "auth", "url")
        assert result.exit_code == 0, result.output
        assert result.output.startswith("https://www.dropbox.com/oauth2/authorize?")
        assert "client_id=app-key" in result.output
        assert "token_access_type=offline" in result.output

    def test_url_without_credentials(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "auth", "url")
        assert result.exit_code == 1
        assert "Missing client_id and client_secret" in result.output

    def test_login_prints_token_json(self, cli_runner, credentials: Path) -> None:
        token = TokenResponse(access_token="sl.token", refresh_token="r-1", scope="members.read")
        with patch("dbxteam.auth.authorize", return_value=token) as mock_authorize:
            result = _invoke(cli_runner, "auth", "login", "--no-browser", "--timeout", "5")

        assert result.exit_code == 0, result.output
        assert '"access_token": "sl.token"' in result.output
        assert '"refresh_token": "r-1"' in result.output
        config = mock_authorize.call_args.args[0]
        assert config.open_browser is False
        assert config.callback_timeout == 5.0

    def test_login_failure_exit_code(self, cli_runner, credentials: Path) -> None:
        with patch("dbxteam.auth.authorize", side_effect=AuthError("No authorization code provided")):
            result = _invoke(cli_runner, "auth", "login")
        assert result.exit_code == 3
        assert "Error: No authorization code provided" in result.output

    def test_refresh(self, cli_runner, credentials: Path) -> None:
        token = TokenResponse(access_token="sl.new", refresh_token="r-1")
        with patch(
            "dbxteam.auth.AuthService.refresh_access_token", return_value=token
        ) as mock_refresh:
            result = _invoke(cli_runner, "auth", "refresh", "--refresh-token", "r-1")

        assert result.exit_code == 0, result.output
        assert '"access_token": "sl.new"' in result.output
        mock_refresh.assert_called_once_with("r-1")


# ---------------------------------------------------------------------------
# team
# ---------------------------------------------------------------------------


class TestTeamCommands:
    def test_info_with_env_token(self, cli_runner, isolated_config: Path, monkeypatch) -> None:
        monkeypatch.setenv("DBXTEAM_ACCESS_TOKEN", "sl.token")
        with patch.object(DropboxClient, "post_json", side_effect=_fake_post):
            result = _invoke(cli_runner, "team", "info")
        assert result.exit_code == 0, result.output
        assert "Team Name: Acme Corp" in result.output

    def test_members_limit(self, cli_runner, isolated_config: Path) -> None:
        with patch.object(DropboxClient, "post_json", side_effect=_fake_post) as mock_post:
            result = _invoke(
                cli_runner, "team", "members", "--access-token", "sl.token", "--limit", "5"
            )
        assert result.exit_code == 0, result.output
        assert "1. ann@acme.test (active)" in result.output
        assert mock_post.call_args.args[1] == {"limit": 5}

    def test_events_json(self, cli_runner, isolated_config: Path) -> None:
        with patch.object(DropboxClient, "post_json", side_effect=_fake_post):
            result = _invoke(cli_runner, "--json", "team", "events", "--access-token", "sl.token")
        assert result.exit_code == 0, result.output
        assert '"events": []' in result.output

    def test_rejected_token_exit_code(self, cli_runner, isolated_config: Path) -> None:
        with patch.object(DropboxClient, "post_json", side_effect=AuthError("HTTP 401: expired")):
            result = _invoke(cli_runner, "team", "info", "--access-token", "bad")
        assert result.exit_code == 3
        assert "HTTP 401: expired" in result.output

    def test_token_required(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "team", "info")
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_full_demo(self, cli_runner, credentials: Path) -> None:
        token = TokenResponse(access_token="sl.token", scope="team_info.read members.read")
        with patch("dbxteam.auth.authorize", return_value=token), patch.object(
            DropboxClient, "post_json", side_effect=_fake_post
        ):
            result = _invoke(cli_runner, "run", "--members-limit", "10")

        assert result.exit_code == 0, result.output
        assert "Token exchange successful." in result.output
        assert "Scopes returned: team_info.read members.read" in result.output
        assert "Team ID: dbtid:AAA" in result.output
        assert "1. ann@acme.test (active)" in result.output
        assert "No events found." in result.output

    def test_options_override_config(self, cli_runner, credentials: Path) -> None:
        token = TokenResponse(access_token="sl.token")
        with patch("dbxteam.auth.authorize", return_value=token) as mock_authorize, patch.object(
            DropboxClient, "post_json", side_effect=_fake_post
        ):
            _invoke(
                cli_runner,
                "run",
                "--client-id",
                "other",
                "--redirect-uri",
                "http://localhost:9999/cb",
                "--scopes",
                "members.read",
            )
        config = mock_authorize.call_args.args[0]
        assert config.client_id == "other"
        assert config.client_secret == "app-secret"
        assert config.redirect_uri == "http://localhost:9999/cb"
        assert config.scopes == "members.read"

    def test_failed_section_exits_non_zero(self, cli_runner, credentials: Path) -> None:
        def _post(url: str, body: Any, access_token: str) -> dict[str, Any]:
            if url == MEMBERS_LIST_URL:
                raise ServerError("HTTP 500: internal")
            return RESPONSES[url]

        token = TokenResponse(access_token="sl.token")
        with patch("dbxteam.auth.authorize", return_value=token), patch.object(
            DropboxClient, "post_json", side_effect=_post
        ):
            result = _invoke(cli_runner, "run")

        assert result.exit_code == 1
        assert "Team Name: Acme Corp" in result.output
        assert "Could not fetch team members: HTTP 500: internal" in result.output
        assert "No events found." in result.output

    def test_missing_credentials(self, cli_runner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "run", "--no-browser")
        assert result.exit_code == 1
        assert "dbxteam config init" in result.output


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self):
        with patch("dbxteam.app._setup_signal_handlers"):
            yield

    def test_dbxteam_error_maps_to_exit_code(self, isolated_config: Path, capsys) -> None:
        with patch("dbxteam.app.app", side_effect=AuthError("token rejected")):
            with pytest.raises(SystemExit) as excinfo:
                main()
        assert excinfo.value.code == 3
        assert "token rejected" in capsys.readouterr().err

    def test_unexpected_error_writes_crash_log(self, isolated_config: Path, capsys) -> None:
        with patch("dbxteam.app.app", side_effect=RuntimeError("kaboom")):
            with pytest.raises(SystemExit) as excinfo:
                main()
        assert excinfo.value.code == 1
        logs = list((isolated_config / "data" / "dbxteam" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: kaboom" in logs[0].read_text()
        assert "Unexpected error" in capsys.readouterr().err

    def test_keyboard_interrupt(self, capsys) -> None:
        with patch("dbxteam.app.app", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as excinfo:
                main()
        assert excinfo.value.code == 130
        assert "Cancelled." in capsys.readouterr().err
