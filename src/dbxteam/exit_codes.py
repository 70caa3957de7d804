"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~dbxteam.exceptions.DbxTeamError` subclass.
Shell wrappers can inspect the exit code to tell a rejected token apart
from a network outage without parsing stderr.

Example::

    $ dbxteam team members --access-token expired
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the token was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (also used for configuration problems)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authorization, token exchange, or token validation failed."""

EXIT_NOT_FOUND = 4
"""The requested endpoint or resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The Dropbox API rejected the request (other 4xx) or returned HTTP 5xx."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""
