"""Canonical Pydantic models shared across all dbxteam modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory or a project-local ``dbxteam.json``:
    :class:`RequestConfig` and :class:`AppConfig`.

**Authorization models** -- produced while authorizing:
    :class:`ListenerConfig`, :class:`OutcomeKind`, :class:`CallbackOutcome`
    and :class:`TokenResponse`.

All models use Pydantic v2. Models that mirror provider payloads use
``extra="allow"`` so that unknown keys are preserved in ``model_extra``.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_REDIRECT_URI = "https://oauth.pstmn.io/v1/callback"
DEFAULT_SCOPES = "team_info.read members.read events.read"


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every Dropbox API call."""

    timeout: float = Field(default=30.0, description="Read timeout in seconds")
    connect_timeout: float = Field(default=15.0, description="Connect timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Max retry attempts")


class AppConfig(BaseModel):
    """Effective application configuration.

    Built by :func:`~dbxteam.config.resolve_config` from defaults, the user
    config file, project config, environment variables and CLI flags (in
    increasing order of precedence).

    ``client_id`` and ``client_secret`` are the Dropbox app key and secret.
    They are optional here so that partial configs load; commands that
    need them call :func:`~dbxteam.config.require_credentials`.
    """

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Redirect URI registered for the Dropbox app",
    )
    scopes: str = Field(
        default=DEFAULT_SCOPES, description="Space-separated OAuth scopes"
    )
    state: str = Field(
        default="dbxteam_state", description="OAuth state value sent with the request"
    )
    callback_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Seconds to wait for the browser redirect before falling back",
    )
    open_browser: bool = Field(
        default=True, description="Open the authorization URL automatically"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Authorization ---


class ListenerConfig(BaseModel):
    """Where the local redirect listener binds and which path it serves.

    Immutable for the listener's lifetime. A ``path`` given without a
    leading slash is normalised (``"callback"`` becomes ``"/callback"``).
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=1, le=65535)
    path: str = "/"
    host: str = "127.0.0.1"

    @field_validator("path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else "/" + value


class OutcomeKind(str, enum.Enum):
    """Variants of :class:`CallbackOutcome`."""

    CODE = "code"
    ERROR = "error"
    INTERNAL = "internal"


class CallbackOutcome(BaseModel):
    """The single result delivered by a redirect to the local listener.

    Exactly one variant is carried:

    * ``CODE`` -- the opaque authorization code.
    * ``ERROR`` -- the provider-supplied error text (e.g. ``access_denied``).
    * ``INTERNAL`` -- a description of an unexpected handler failure.

    Instances are frozen; once a listener resolves with an outcome, it
    never changes.

    Example::

        outcome = CallbackOutcome.code("AUTH123")
        assert outcome.kind is OutcomeKind.CODE
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    value: str

    @classmethod
    def code(cls, value: str) -> CallbackOutcome:
        return cls(kind=OutcomeKind.CODE, value=value)

    @classmethod
    def error(cls, value: str) -> CallbackOutcome:
        return cls(kind=OutcomeKind.ERROR, value=value)

    @classmethod
    def internal(cls, value: str) -> CallbackOutcome:
        return cls(kind=OutcomeKind.INTERNAL, value=value)


class TokenResponse(BaseModel):
    """Token endpoint response from ``https://api.dropboxapi.com/oauth2/token``.

    Only ``access_token`` is required. Dropbox returns ``refresh_token``
    when the authorization URL requested ``token_access_type=offline``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    expires_in: Optional[int] = None
    account_id: Optional[str] = None
    team_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Return the response as a JSON-ready dict, dropping unset fields."""
        return self.model_dump(mode="json", exclude_none=True)
