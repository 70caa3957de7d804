"""Dropbox authorization for dbxteam.

- :class:`RedirectListener` -- local listener that captures the OAuth
  redirect and hands the code to the waiting command.
- :class:`AuthorizationFlow` -- listener-or-manual-entry policy.
- :class:`AuthService` -- authorization URL building and token requests.
- :func:`authorize` -- the two combined, driven by an :class:`~dbxteam.models.AppConfig`.

Typical usage::

    from dbxteam.auth import AuthService, AuthorizationFlow

    service = AuthService(client_id, client_secret, redirect_uri, scope)
    flow = AuthorizationFlow(redirect_uri, timeout=120)
    code = flow.obtain_code(service.build_authorization_url("state"))
    token = service.exchange_code(code)
"""

from dbxteam.auth.callback_server import RedirectListener, RendezvousCell, parse_query
from dbxteam.auth.flow import (
    AuthorizationFlow,
    authorize,
    is_loopback_redirect,
    listener_config_from_uri,
)
from dbxteam.auth.oauth import AuthService

__all__ = [
    "AuthService",
    "AuthorizationFlow",
    "RedirectListener",
    "RendezvousCell",
    "authorize",
    "is_loopback_redirect",
    "listener_config_from_uri",
    "parse_query",
]
