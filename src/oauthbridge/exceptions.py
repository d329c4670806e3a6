"""Exception hierarchy for oauthbridge.

All exceptions inherit from :class:`BridgeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`oauthbridge.exit_codes`.
Inside the bridge these exceptions never escape to the caller directly: the
flow controller catches them and rejects the originating
:class:`~oauthbridge.call.PluginCall` with ``str(exc)``.  The CLI then maps the
rejection back to ``exc.exit_code``.

Subclass hierarchy::

    BridgeError (exit 1)
    +-- ValidationError         (exit 2)
    +-- AuthCancelledError      (exit 3)
    +-- AuthFailedError         (exit 3)
    +-- TokenExchangeError      (exit 5)
    +-- ResourceFetchError      (exit 6)
    +-- HandlerResolutionError  (exit 10)
    +-- ConfigError             (exit 1)
"""

from oauthbridge.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PLUGIN_ERROR,
    EXIT_TOKEN_EXCHANGE_FAILURE,
)


class BridgeError(Exception):
    """Base exception for all oauthbridge errors.

    Args:
        message: Human-readable error description, used verbatim as the
            rejection message delivered to the caller.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(BridgeError):
    """Raised when a required call option is missing or empty."""

    exit_code = EXIT_INVALID_USAGE


class AuthCancelledError(BridgeError):
    """Raised when the user dismissed the authorization UI."""

    exit_code = EXIT_AUTH_FAILURE


class AuthFailedError(BridgeError):
    """Raised when the authorization step returned an error or no usable response."""

    exit_code = EXIT_AUTH_FAILURE


class TokenExchangeError(BridgeError):
    """Raised on network or protocol errors while exchanging or refreshing tokens."""

    exit_code = EXIT_TOKEN_EXCHANGE_FAILURE


class ResourceFetchError(BridgeError):
    """Raised when the protected resource request fails or returns non-2xx."""

    exit_code = EXIT_CONNECTION_ERROR


class HandlerResolutionError(BridgeError):
    """Raised when a configured custom handler is unknown or cannot be instantiated."""

    exit_code = EXIT_PLUGIN_ERROR


class ConfigError(BridgeError):
    """Raised for configuration problems (invalid settings file, bad options file)."""

    exit_code = EXIT_GENERIC_FAILURE
