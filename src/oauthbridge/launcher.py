"""Launchers for the user-facing authorization step.

When the flow controller suspends it hands a
:class:`~oauthbridge.models.PendingAuthorization` to an
:class:`AuthorizationLauncher`. The launcher only starts the step; the host is
responsible for delivering the eventual redirect to
:meth:`~oauthbridge.plugin.OAuth2ClientPlugin.handle_redirect`.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from abc import ABC, abstractmethod

from oauthbridge.models import PendingAuthorization

logger = logging.getLogger(__name__)


class AuthorizationLauncher(ABC):
    """Starts the user-facing authorization step for a pending request."""

    @abstractmethod
    def launch(self, pending: PendingAuthorization) -> None:
        """Present ``pending.url`` to the user. Must not block on the user."""


class BrowserLauncher(AuthorizationLauncher):
    """Open the authorization URL in the system browser.

    Args:
        background: Open the browser in a daemon thread so that a slow
            browser start does not hold up the caller. Short-lived processes
            (the CLI) pass ``False`` so the browser is started before exit.
    """

    def __init__(self, background: bool = True) -> None:
        self._background = background

    def launch(self, pending: PendingAuthorization) -> None:
        logger.debug("Opening browser for request %s", pending.correlation_id)

        def open_browser() -> None:
            if not webbrowser.open(pending.url):
                logger.warning("No browser available; open the authorization URL manually")

        if self._background:
            threading.Thread(target=open_browser, daemon=True).start()
        else:
            open_browser()


class NullLauncher(AuthorizationLauncher):
    """Leave presentation to the host, which reads the returned descriptor."""

    def launch(self, pending: PendingAuthorization) -> None:
        logger.debug("Authorization request %s ready for the host", pending.correlation_id)
