"""Exception hierarchy for dbxteam.

All exceptions inherit from :class:`DbxTeamError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`dbxteam.exit_codes`.
The top-level error handler in :func:`dbxteam.app.main` catches
``DbxTeamError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    DbxTeamError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigError                (exit 1)
    +-- AuthError                  (exit 3)
    |   +-- CallbackError
    |       +-- ListenerBindError
    |       +-- CallbackTimeoutError
    |       +-- AuthorizationDeniedError
    |       +-- CallbackInternalError
    +-- NotFoundError              (exit 4)
    +-- ServerError                (exit 5)
    +-- ApiError                   (exit 5)
    +-- ConnectionError_           (exit 6)

The :class:`CallbackError` branch is raised by
:class:`~dbxteam.auth.callback_server.RedirectListener`. The authorization
flow recovers from every one of them by falling back to manual code entry.
"""

from dbxteam.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class DbxTeamError(Exception):
    """Base exception for all dbxteam errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`dbxteam.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(DbxTeamError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(DbxTeamError):
    """Raised for configuration problems (missing client credentials, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthError(DbxTeamError):
    """Raised when authorization or token exchange fails, or a token is rejected."""

    exit_code = EXIT_AUTH_FAILURE


class CallbackError(AuthError):
    """Base class for failures of the local redirect listener."""


class ListenerBindError(CallbackError):
    """Raised when the callback port is already in use or otherwise unavailable."""


class CallbackTimeoutError(CallbackError):
    """Raised when no redirect reached the listener before the deadline."""


class AuthorizationDeniedError(CallbackError):
    """Raised when the provider redirected back with an ``error`` parameter.

    Args:
        error: The provider-supplied error text (e.g. ``access_denied``).
    """

    def __init__(self, error: str):
        super().__init__(f"Authorization error: {error}")
        self.error = error


class CallbackInternalError(CallbackError):
    """Raised when the callback handler failed unexpectedly (e.g. a malformed query)."""


class NotFoundError(DbxTeamError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class ServerError(DbxTeamError):
    """Raised when the API returns an HTTP 5xx server error."""

    exit_code = EXIT_SERVER_ERROR


class ApiError(DbxTeamError):
    """Raised when the API rejects a request with a 4xx status other than 401/403/404."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(DbxTeamError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
