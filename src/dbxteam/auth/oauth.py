"""Dropbox OAuth2 authorization code grant: URL building and token requests.

:class:`AuthService` builds the URL the user opens to approve the app and
talks to the token endpoint to exchange an authorization code (or a refresh
token) for an access token. Client credentials are sent with HTTP Basic
auth, as Dropbox recommends for confidential clients.

See Also:
    :mod:`dbxteam.auth.flow` for obtaining the authorization code.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from dbxteam.exceptions import AuthError, ConfigError, ConnectionError_
from dbxteam.models import TokenResponse

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://www.dropbox.com/oauth2/authorize"
TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"


class AuthService:
    """Build authorization URLs and exchange codes for tokens.

    Args:
        client_id: Dropbox app key.
        client_secret: Dropbox app secret.
        redirect_uri: Redirect URI registered for the app. Must match the
            one used in the authorization request.
        scope: Space-separated scopes (e.g. ``"team_info.read members.read"``).
            Blank means the app's default scopes.
        timeout: Token endpoint timeout in seconds.
        transport: Optional httpx transport, used by tests.

    Raises:
        ConfigError: If ``client_id``, ``client_secret`` or ``redirect_uri``
            is blank.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scope: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        for name, value in (
            ("client_id", client_id),
            ("client_secret", client_secret),
            ("redirect_uri", redirect_uri),
        ):
            if not value or not value.strip():
                raise ConfigError(f"{name} is required")

        self.client_id = client_id.strip()
        self.client_secret = client_secret.strip()
        self.redirect_uri = redirect_uri.strip()
        self.scope = (scope or "").strip()
        self._timeout = timeout
        self._transport = transport

    def build_authorization_url(self, state: Optional[str] = None) -> str:
        """Return the URL to open in a browser to obtain an authorization code.

        ``token_access_type=offline`` is always requested so that the token
        response includes a refresh token.

        Args:
            state: Optional opaque value echoed back on the redirect.
        """
        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "token_access_type": "offline",
        }
        if self.scope:
            params["scope"] = self.scope
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenResponse:
        """Exchange an authorization code for access and refresh tokens.

        Raises:
            AuthError: If the endpoint rejects the code or the response has
                no ``access_token``.
            ConnectionError_: On network failure.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        }
        return self._request_token(data, "Token exchange")

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Obtain a new access token using a refresh token.

        Dropbox does not rotate refresh tokens, so the returned response
        carries the one passed in when the endpoint omits it.

        Raises:
            AuthError: If the endpoint rejects the refresh token.
            ConnectionError_: On network failure.
        """
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        token = self._request_token(data, "Token refresh")
        if token.refresh_token is None:
            token = token.model_copy(update={"refresh_token": refresh_token})
        return token

    def _request_token(self, data: dict[str, str], action: str) -> TokenResponse:
        logger.debug("%s request to %s", action, TOKEN_URL)
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    TOKEN_URL,
                    data=data,
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"{action} failed: {exc}") from exc

        if not response.is_success:
            raise AuthError(
                f"{action} failed: HTTP {response.status_code} - {response.text}"
            )

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise AuthError(f"{action} returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthError(f"{action} response missing 'access_token' field")

        return TokenResponse.model_validate(payload)
