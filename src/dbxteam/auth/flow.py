"""Obtain an authorization code: local redirect capture with manual fallback.

:class:`AuthorizationFlow` decides how the authorization code reaches the
CLI:

1. If the redirect URI targets a loopback address (``localhost``,
   ``127.0.0.1``, ``[::1]``), a :class:`~dbxteam.auth.callback_server.RedirectListener`
   is bound to its port and path, the authorization URL is opened in a
   browser, and the flow waits for the redirect.
2. If the listener cannot bind, times out, receives an ``error`` redirect,
   or fails internally, a one-line diagnostic is printed and the flow falls
   back to step 3.
3. Manual entry: the URL is printed and the user pastes the code from the
   redirect URI. Only an empty answer is fatal.

The listener is always stopped before :meth:`AuthorizationFlow.obtain_code`
returns.
"""

from __future__ import annotations

import ipaddress
import logging
import threading
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlsplit

import httpx
import typer

from dbxteam.auth.callback_server import RedirectListener
from dbxteam.auth.oauth import AuthService
from dbxteam.config import require_credentials
from dbxteam.exceptions import AuthError, CallbackError, ListenerBindError
from dbxteam.models import AppConfig, ListenerConfig, TokenResponse
from dbxteam.output import error, info, success, warning

logger = logging.getLogger(__name__)


def is_loopback_redirect(redirect_uri: str) -> bool:
    """Return True if *redirect_uri* is a plain-HTTP URL on a loopback host.

    Example::

        >>> is_loopback_redirect("http://localhost:45678/callback")
        True
        >>> is_loopback_redirect("https://oauth.pstmn.io/v1/callback")
        False
    """
    parts = urlsplit(redirect_uri)
    if parts.scheme != "http" or not parts.hostname:
        return False
    if parts.hostname == "localhost":
        return True
    try:
        return ipaddress.ip_address(parts.hostname).is_loopback
    except ValueError:
        return False


def listener_config_from_uri(redirect_uri: str) -> ListenerConfig:
    """Derive the listener's bind address, port and path from a loopback redirect URI.

    The port defaults to 80 and an empty path to ``/``. ``localhost`` binds
    to ``127.0.0.1``.

    Raises:
        AuthError: If the URI is not a loopback HTTP URI or has an invalid port.
    """
    if not is_loopback_redirect(redirect_uri):
        raise AuthError(f"Redirect URI is not a loopback HTTP address: {redirect_uri}")

    parts = urlsplit(redirect_uri)
    try:
        port = 80 if parts.port is None else parts.port
    except ValueError as exc:
        raise AuthError(f"Invalid port in redirect URI {redirect_uri}: {exc}") from exc

    host = parts.hostname or "localhost"
    if host == "localhost":
        host = "127.0.0.1"
    if not 1 <= port <= 65535:
        raise AuthError(f"Invalid port in redirect URI {redirect_uri}: {port}")
    return ListenerConfig(port=port, path=parts.path or "/", host=host)


def _prompt_for_code() -> str:
    try:
        return typer.prompt(
            "Paste the authorization code here", default="", show_default=False
        )
    except typer.Abort:
        return ""


class AuthorizationFlow:
    """Get an authorization code from the user's browser session.

    Args:
        redirect_uri: The redirect URI sent in the authorization request.
        timeout: Seconds to wait for the redirect before falling back.
        open_browser: Whether to launch the system browser automatically.
        browser: Callable used to open URLs (defaults to
            :func:`webbrowser.open`).
        prompt: Callable returning the manually pasted code.
    """

    def __init__(
        self,
        redirect_uri: str,
        timeout: float = 120.0,
        open_browser: bool = True,
        browser: Optional[Callable[[str], object]] = None,
        prompt: Optional[Callable[[], str]] = None,
    ) -> None:
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.open_browser = open_browser
        self._browser = browser or webbrowser.open
        self._prompt = prompt or _prompt_for_code

    @property
    def uses_local_callback(self) -> bool:
        return is_loopback_redirect(self.redirect_uri)

    def obtain_code(self, auth_url: str) -> str:
        """Return an authorization code for *auth_url*.

        Raises:
            AuthError: If the local capture did not produce a code and the
                manual answer was empty.
        """
        code: Optional[str] = None
        if self.uses_local_callback:
            code = self._capture_via_listener(auth_url)
        elif self.open_browser:
            self._launch_browser(auth_url)

        if code is None:
            code = self._manual_entry(auth_url)
        return code

    def _capture_via_listener(self, auth_url: str) -> Optional[str]:
        info(f"Starting local HTTP server to capture OAuth callback at {self.redirect_uri}")
        try:
            listener = RedirectListener(listener_config_from_uri(self.redirect_uri))
        except ListenerBindError as exc:
            error(str(exc))
            return None

        with listener:
            info("Opening browser for authorization. If it does not open, copy-paste the URL below:")
            info(auth_url)
            if self.open_browser:
                self._launch_browser(auth_url)

            try:
                code = listener.wait_for_outcome(self.timeout)
            except CallbackError as exc:
                error(str(exc))
                return None

        success("Authorization code received automatically from the browser redirect.")
        return code

    def _launch_browser(self, url: str) -> None:
        def _open() -> None:
            try:
                if not self._browser(url):
                    info("No browser available; open the URL above manually.")
            except webbrowser.Error as exc:
                warning(f"Unable to open browser automatically: {exc}")

        # webbrowser.open can block on console browsers.
        threading.Thread(target=_open, name="dbxteam-browser", daemon=True).start()

    def _manual_entry(self, auth_url: str) -> str:
        info("If the browser flow didn't complete, you can obtain the code manually.")
        info("Open this URL in your browser:")
        info(auth_url)
        info(
            "After allowing the app, you will be redirected to the redirect URI "
            "with ?code=<AUTH_CODE>"
        )
        code = (self._prompt() or "").strip()
        if not code:
            raise AuthError("No authorization code provided")
        return code


def authorize(
    config: AppConfig,
    browser: Optional[Callable[[str], object]] = None,
    prompt: Optional[Callable[[], str]] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> TokenResponse:
    """Run the full authorization code grant for *config* and return the tokens.

    Raises:
        ConfigError: If the client credentials are missing.
        AuthError: If no code was obtained or the exchange failed.
    """
    client_id, client_secret = require_credentials(config)
    service = AuthService(
        client_id,
        client_secret,
        config.redirect_uri,
        scope=config.scopes,
        timeout=config.request.timeout,
        transport=transport,
    )
    flow = AuthorizationFlow(
        config.redirect_uri,
        timeout=config.callback_timeout,
        open_browser=config.open_browser,
        browser=browser,
        prompt=prompt,
    )
    code = flow.obtain_code(service.build_authorization_url(config.state))
    token = service.exchange_code(code)
    logger.debug("Token exchange succeeded for account %s", token.account_id)
    return token
