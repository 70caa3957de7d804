"""dbxteam -- Dropbox Business team demo client with local OAuth redirect capture.

The command-line client authorizes against Dropbox with the OAuth2
authorization code grant and then prints team information: organization
details, the member list, and recent audit-log events.

When the configured redirect URI points at a loopback address, a short-lived
local HTTP listener catches the browser redirect and hands the authorization
code back to the waiting command. Otherwise (or when the listener fails or
times out) the user pastes the code manually.

Typical workflow::

    dbxteam config init     # store client id / secret / redirect URI
    dbxteam run             # authorize, exchange, print team data

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    service: Dropbox team endpoints and their printing.
"""

__version__ = "0.1.0"
