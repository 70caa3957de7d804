"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for dbxteam:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.dbxteam/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **User config** -- a single :class:`~dbxteam.models.AppConfig` JSON file
  holding the Dropbox app key, secret and redirect URI.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, an explicit config file, project-local config,
  and the user config into the effective configuration.

The user config holds the client secret, so it is written atomically with
``0o600`` permissions (:func:`_atomic_write`).
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from dbxteam.exceptions import ConfigError
from dbxteam.models import AppConfig

_APP_NAME = "dbxteam"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "dbxteam.json"

ENV_PREFIX = "DBXTEAM_"

# Environment variable suffix -> AppConfig field.
_ENV_FIELDS = {
    "CLIENT_ID": "client_id",
    "CLIENT_SECRET": "client_secret",
    "REDIRECT_URI": "redirect_uri",
    "SCOPES": "scopes",
    "CALLBACK_TIMEOUT": "callback_timeout",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/dbxteam/`` (default ``~/.config/dbxteam/``).
    On macOS/Windows: ``~/.dbxteam/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/dbxteam/`` (default ``~/.local/share/dbxteam/``).
    On macOS/Windows: ``~/.dbxteam/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def user_config_path() -> Path:
    """Path to the user config file (``<config_dir>/config.json``)."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* atomically with ``0o600`` permissions.

    The temporary file is created next to *path* so that ``os.replace`` is
    an atomic rename on POSIX. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def _read_json(path: Path, label: str) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid {label} at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid {label} at {path}: expected a JSON object")
    return data


def load_config_file(path: Path) -> dict[str, Any]:
    """Load an explicit config file passed with ``--config``.

    Raises:
        ConfigError: If the file does not exist or is not a JSON object.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    return _read_json(path, "config file")


def load_user_config() -> dict[str, Any]:
    """Load the raw user config, or an empty dict when none exists."""
    path = user_config_path()
    if not path.is_file():
        return {}
    return _read_json(path, "user config")


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./dbxteam.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    return _read_json(path, "project config")


def save_user_config(config: AppConfig) -> Path:
    """Persist *config* as the user config and return the written path."""
    path = user_config_path()
    data = config.model_dump(mode="json", exclude_none=True)
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        value = os.environ.get(ENV_PREFIX + suffix)
        if value:
            overrides[field] = value
    return overrides


def _merge(base: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in layer.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    config_file: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> AppConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags (``overrides``; ``None`` values are ignored)
        2. Environment variables (``DBXTEAM_CLIENT_ID``, ``DBXTEAM_CLIENT_SECRET``,
           ``DBXTEAM_REDIRECT_URI``, ``DBXTEAM_SCOPES``,
           ``DBXTEAM_CALLBACK_TIMEOUT``)
        3. Explicit config file (``--config``)
        4. Project config (``./dbxteam.json``)
        5. User config (``~/.config/dbxteam/config.json``)
        6. Defaults

    Raises:
        ConfigError: If any layer is unreadable or the merged result fails
            validation.
    """
    data = load_user_config()

    project = load_project_config()
    if project is not None:
        data = _merge(data, project)

    if config_file is not None:
        data = _merge(data, load_config_file(config_file))

    data = _merge(data, _env_overrides())

    if overrides:
        data = _merge(data, {k: v for k, v in overrides.items() if v is not None})

    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def require_credentials(config: AppConfig) -> tuple[str, str]:
    """Return ``(client_id, client_secret)`` or raise naming what is missing.

    Raises:
        ConfigError: If either value is missing or blank.
    """
    missing = [
        name
        for name, value in (
            ("client_id", config.client_id),
            ("client_secret", config.client_secret),
        )
        if not value or not value.strip()
    ]
    if missing:
        env_names = ", ".join(ENV_PREFIX + name.upper() for name in missing)
        raise ConfigError(
            f"Missing {' and '.join(missing)}. Set them with 'dbxteam config init' "
            f"or the {env_names} environment variable(s)."
        )
    assert config.client_id is not None and config.client_secret is not None
    return config.client_id.strip(), config.client_secret.strip()


def mask_secret(value: Optional[str]) -> Optional[str]:
    """Mask all but the last four characters of a secret for display."""
    if not value:
        return value
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]
