"""Built-in CLI sub-commands for dbxteam.

* :mod:`~dbxteam.commands.run` -- the end-to-end demo (authorize, then
  print team info, members and events).
* :mod:`~dbxteam.commands.auth` -- authorization URL, login and token refresh.
* :mod:`~dbxteam.commands.team` -- individual team sections with an
  existing access token.
* :mod:`~dbxteam.commands.config` -- view and create the user config.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``auth`` and ``team``) or a plain callback
function registered directly on the root app (for ``run``).
"""
