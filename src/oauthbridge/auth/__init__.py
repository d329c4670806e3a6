"""OAuth2 protocol primitives used by the flow controller.

This package plays the part a native authorization library plays on mobile
platforms:

- :class:`AuthorizationService` -- disposable handle that builds
  authorization URLs, exchanges codes, and refreshes tokens over :mod:`httpx`.
- :class:`AuthorizationState` -- provider configuration plus the latest
  authorization response and token set.
- :func:`parse_redirect` -- turns the redirect URI delivered after the
  user-facing step into a response or a failure.
- :func:`generate_pkce_pair` -- PKCE S256 verifier/challenge helper.
"""

from oauthbridge.auth.redirect import parse_redirect, user_canceled
from oauthbridge.auth.service import AuthorizationService, generate_pkce_pair
from oauthbridge.auth.state import AuthorizationState

__all__ = [
    "AuthorizationService",
    "AuthorizationState",
    "generate_pkce_pair",
    "parse_redirect",
    "user_canceled",
]
