"""Abstract base classes for custom authorization handlers.

A custom handler replaces the built-in OAuth2 flow entirely -- for example to
use a vendor SDK that performs its own login. It implements two
capabilities:

1. :meth:`CustomHandler.fetch_access_token` -- obtain a token and report the
   outcome through an :class:`AccessTokenCallback`.
2. :meth:`CustomHandler.logout` -- end the session, returning ``True`` on
   success.

Handlers are registered with a
:class:`~oauthbridge.handlers.registry.HandlerRegistry` and selected per call
by the ``<platform>.customHandlerClass`` option.

Example:
    Minimal handler::

        class StaticTokenHandler(CustomHandler):
            def fetch_access_token(self, context, call, callback):
                callback.on_success("static-token")

            def logout(self, call):
                return True
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from oauthbridge.models import BridgeSettings

if TYPE_CHECKING:
    from oauthbridge.call import PluginCall
    from oauthbridge.launcher import AuthorizationLauncher


@dataclass(frozen=True)
class HandlerContext:
    """Host facilities made available to a custom handler."""

    settings: BridgeSettings
    launcher: AuthorizationLauncher


class AccessTokenCallback(ABC):
    """Receives the outcome of :meth:`CustomHandler.fetch_access_token`.

    Exactly one method should be called, once. The bridge's implementation
    tolerates repeated calls by ignoring everything after the first outcome.
    """

    @abstractmethod
    def on_success(self, access_token: str) -> None:
        """The handler obtained *access_token*."""

    @abstractmethod
    def on_cancel(self) -> None:
        """The user canceled the handler's login."""

    @abstractmethod
    def on_error(self, error: Exception) -> None:
        """The handler's login failed with *error*."""


class CustomHandler(ABC):
    """Base class for handlers that bypass the built-in authorization flow.

    Handlers are instantiated with a no-arg constructor, once per call.
    """

    @abstractmethod
    def fetch_access_token(
        self,
        context: HandlerContext,
        call: PluginCall,
        callback: AccessTokenCallback,
    ) -> None:
        """Obtain an access token for *call* and report it through *callback*.

        May report synchronously or from another thread.
        """

    @abstractmethod
    def logout(self, call: PluginCall) -> bool:
        """End the handler's session. Returns ``True`` on success."""
