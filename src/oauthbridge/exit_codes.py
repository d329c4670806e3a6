"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~oauthbridge.exceptions.BridgeError` subclass.
Shell wrappers can inspect the exit code of ``oauthbridge resume`` to tell a
rejected login from a broken network without parsing stderr.

Example::

    $ oauthbridge resume 3f9a... "myapp:/#error=access_denied"
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the authorization step did not yield a token
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""A required call option was missing or the command was misused."""

EXIT_AUTH_FAILURE = 3
"""The authorization step was canceled or failed."""

EXIT_TOKEN_EXCHANGE_FAILURE = 5
"""The token endpoint rejected the exchange or refresh."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_PLUGIN_ERROR = 10
"""A custom handler could not be resolved or instantiated."""
