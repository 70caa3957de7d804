"""Tests for dbxteam.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from dbxteam.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_config_file,
    load_project_config,
    load_user_config,
    mask_secret,
    require_credentials,
    resolve_config,
    save_user_config,
    user_config_path,
)
from dbxteam.exceptions import ConfigError
from dbxteam.models import DEFAULT_REDIRECT_URI, DEFAULT_SCOPES, AppConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbxteam.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "dbxteam"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbxteam.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "custom"))

        assert get_config_dir() == tmp_path / "custom" / "dbxteam"

    def test_data_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbxteam.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

        assert get_data_dir() == tmp_path / "data" / "dbxteam"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dbxteam.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".dbxteam"
        assert get_data_dir() == tmp_path / ".dbxteam" / "data"

    def test_user_config_path(self, isolated_config: Path) -> None:
        assert user_config_path() == isolated_config / "config" / "dbxteam" / "config.json"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_owner_only_permissions(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "config.json"
        _atomic_write(target, '{"client_secret": "s"}')
        assert target.read_text(encoding="utf-8") == '{"client_secret": "s"}'
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        target.write_text("old", encoding="utf-8")
        _atomic_write(target, "new")
        assert target.read_text(encoding="utf-8") == "new"
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        with patch("dbxteam.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


class TestConfigFiles:
    def test_user_config_missing_is_empty(self, isolated_config: Path) -> None:
        assert load_user_config() == {}

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        path = save_user_config(AppConfig(client_id="k", client_secret="s"))
        assert path == user_config_path()
        data = load_user_config()
        assert data["client_id"] == "k"
        assert data["client_secret"] == "s"
        assert data["redirect_uri"] == DEFAULT_REDIRECT_URI

    def test_invalid_json_raises(self, isolated_config: Path) -> None:
        user_config_path().write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid user config"):
            load_user_config()

    def test_non_object_raises(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "dbxteam.json", ["a"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_config()

    def test_project_config_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_explicit_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config_file(tmp_path / "nope.json")


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        config = resolve_config()
        assert config.client_id is None
        assert config.redirect_uri == DEFAULT_REDIRECT_URI
        assert config.scopes == DEFAULT_SCOPES
        assert config.callback_timeout == 120.0
        assert config.request.connect_timeout == 15.0
        assert config.request.timeout == 30.0

    def test_layers_in_order(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_user_config(
            AppConfig(client_id="user", client_secret="user-secret", scopes="user.scope")
        )
        _write_json(isolated_config / "dbxteam.json", {"client_id": "project", "state": "p"})
        explicit = isolated_config / "explicit.json"
        _write_json(explicit, {"client_id": "explicit", "redirect_uri": "http://localhost:1/cb"})
        monkeypatch.setenv("DBXTEAM_CLIENT_ID", "env")
        monkeypatch.setenv("DBXTEAM_CALLBACK_TIMEOUT", "30")

        config = resolve_config(explicit, {"client_id": "cli", "scopes": None})

        assert config.client_id == "cli"
        assert config.client_secret == "user-secret"
        assert config.scopes == "user.scope"
        assert config.state == "p"
        assert config.redirect_uri == "http://localhost:1/cb"
        assert config.callback_timeout == 30.0

    def test_env_beats_explicit_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        explicit = isolated_config / "explicit.json"
        _write_json(explicit, {"client_secret": "file"})
        monkeypatch.setenv("DBXTEAM_CLIENT_SECRET", "env")
        assert resolve_config(explicit).client_secret == "env"

    def test_nested_request_settings_merge(self, isolated_config: Path) -> None:
        _write_json(user_config_path(), {"request": {"timeout": 5}})
        _write_json(isolated_config / "dbxteam.json", {"request": {"max_retries": 0}})
        config = resolve_config()
        assert config.request.timeout == 5
        assert config.request.max_retries == 0
        assert config.request.connect_timeout == 15.0

    def test_validation_error(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DBXTEAM_CALLBACK_TIMEOUT", "-1")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()


class TestCredentials:
    def test_present(self) -> None:
        assert require_credentials(AppConfig(client_id=" k ", client_secret="s")) == ("k", "s")

    def test_missing_both(self) -> None:
        with pytest.raises(ConfigError) as excinfo:
            require_credentials(AppConfig(client_secret="  "))
        message = str(excinfo.value)
        assert "client_id and client_secret" in message
        assert "DBXTEAM_CLIENT_ID, DBXTEAM_CLIENT_SECRET" in message
        assert "dbxteam config init" in message

    @pytest.mark.parametrize(
        "value, expected",
        [(None, None), ("", ""), ("abc", "***"), ("secret-value", "********alue")],
    )
    def test_mask_secret(self, value, expected) -> None:
        assert mask_secret(value) == expected
