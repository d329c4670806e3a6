"""Bridge entry point exposed to the calling application layer.

:class:`OAuth2ClientPlugin` wires settings, the session store, the handler
registry, and a launcher into an
:class:`~oauthbridge.flow.AuthorizationFlowController`, and exposes the
methods a host calls:

- :meth:`~OAuth2ClientPlugin.authenticate` / :meth:`~OAuth2ClientPlugin.logout`
  -- the plugin methods, each taking a :class:`~oauthbridge.call.PluginCall`.
- :meth:`~OAuth2ClientPlugin.handle_redirect` /
  :meth:`~OAuth2ClientPlugin.handle_cancel` -- deliver the outcome of the
  user-facing authorization step.
- :meth:`~OAuth2ClientPlugin.handle_on_stop` -- the host was suspended.

Typical usage::

    with OAuth2ClientPlugin(settings) as plugin:
        call = PluginCall("authenticate", options)
        pending = plugin.authenticate(call)
        ...
        plugin.handle_redirect(pending.correlation_id, redirect_url)
        payload = call.result(timeout=60)
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Any, Mapping, Optional, Union

import httpx

from oauthbridge.call import PluginCall
from oauthbridge.flow import AuthorizationFlowController
from oauthbridge.handlers.base import CustomHandler
from oauthbridge.handlers.registry import HandlerRegistry
from oauthbridge.launcher import AuthorizationLauncher, BrowserLauncher, NullLauncher
from oauthbridge.models import BridgeSettings, PendingAuthorization
from oauthbridge.session import SessionStore

LOG_TAG = "OAuth2Client"
"""Plugin name; also the default session namespace."""


class OAuth2ClientPlugin:
    """Host-facing OAuth2 client plugin.

    Args:
        settings: Bridge settings; defaults are used when omitted.
        handlers: Either a ready :class:`HandlerRegistry` or a mapping of
            handler names to :class:`CustomHandler` subclasses.
        launcher: Starts the authorization step. Defaults to the system
            browser when ``settings.open_browser`` is set, otherwise to a
            launcher that leaves presentation to the host.
        session_store: Persistence for pending calls and state. Defaults to
            the ``settings.session_namespace`` namespace.
        executor: Background executor for token exchange and resource fetch.
        transport: Optional :mod:`httpx` transport for the token endpoint.
    """

    def __init__(
        self,
        settings: Optional[BridgeSettings] = None,
        handlers: Union[HandlerRegistry, Mapping[str, type[CustomHandler]], None] = None,
        launcher: Optional[AuthorizationLauncher] = None,
        session_store: Optional[SessionStore] = None,
        executor: Optional[Executor] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings or BridgeSettings()
        if isinstance(handlers, HandlerRegistry):
            registry = handlers
        else:
            registry = HandlerRegistry(handlers)
        if launcher is None:
            launcher = BrowserLauncher() if self._settings.open_browser else NullLauncher()
        self._store = session_store or SessionStore(self._settings.session_namespace)
        self._controller = AuthorizationFlowController(
            self._settings,
            self._store,
            registry=registry,
            launcher=launcher,
            executor=executor,
            transport=transport,
        )

    def __enter__(self) -> OAuth2ClientPlugin:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    @property
    def settings(self) -> BridgeSettings:
        return self._settings

    @property
    def session_store(self) -> SessionStore:
        return self._store

    @property
    def controller(self) -> AuthorizationFlowController:
        return self._controller

    # ------------------------------------------------------------------
    # Plugin methods
    # ------------------------------------------------------------------

    def authenticate(self, call: PluginCall) -> Optional[PendingAuthorization]:
        """Start authorizing *call*. See :meth:`AuthorizationFlowController.authenticate`."""
        return self._controller.authenticate(call)

    def logout(self, call: PluginCall) -> None:
        """End the session. See :meth:`AuthorizationFlowController.logout`."""
        self._controller.logout(call)

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def handle_redirect(self, correlation_id: str, redirect_url: str) -> Optional[PluginCall]:
        """Deliver the redirect received for *correlation_id*."""
        return self._controller.resume(correlation_id, redirect_url)

    def handle_cancel(self, correlation_id: str) -> Optional[PluginCall]:
        """Report that the user dismissed the authorization step."""
        return self._controller.resume(correlation_id, None)

    def handle_on_stop(self) -> None:
        """The host was backgrounded or stopped."""
        self._controller.on_stop()

    def close(self) -> None:
        """Release the service handle and background workers."""
        self._controller.close()
