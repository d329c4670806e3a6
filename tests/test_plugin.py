"""Tests for the host-facing plugin and the launchers."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import httpx
import pytest

from oauthbridge.call import CallStatus, PluginCall
from oauthbridge.handlers import CustomHandler
from oauthbridge.launcher import AuthorizationLauncher, BrowserLauncher, NullLauncher
from oauthbridge.models import BridgeSettings, PendingAuthorization
from oauthbridge.plugin import OAuth2ClientPlugin
from oauthbridge.session import SessionStore


class _RecordingLauncher(AuthorizationLauncher):
    def __init__(self) -> None:
        self.launched: list[PendingAuthorization] = []

    def launch(self, pending: PendingAuthorization) -> None:
        self.launched.append(pending)


class _StaticHandler(CustomHandler):
    def fetch_access_token(self, context, call, callback) -> None:
        callback.on_success("static-token")

    def logout(self, call: PluginCall) -> bool:
        return True


@pytest.fixture
def plugin(settings: BridgeSettings, store: SessionStore, transport: httpx.MockTransport):
    with OAuth2ClientPlugin(
        settings,
        handlers={"static": _StaticHandler},
        launcher=_RecordingLauncher(),
        session_store=store,
        transport=transport,
    ) as plugin:
        yield plugin


class TestOAuth2ClientPlugin:
    def test_round_trip(self, plugin: OAuth2ClientPlugin, call_options: dict[str, Any]) -> None:
        call = PluginCall("authenticate", call_options)
        pending = plugin.authenticate(call)
        assert pending is not None

        plugin.handle_redirect(pending.correlation_id, "myapp:/#access_token=tok&state=xyz")

        assert call.result(timeout=5) == {"accessToken": "tok"}

    def test_cancel(self, plugin: OAuth2ClientPlugin, call_options: dict[str, Any]) -> None:
        call = PluginCall("authenticate", call_options)
        pending = plugin.authenticate(call)
        assert pending is not None

        assert plugin.handle_cancel(pending.correlation_id) is call
        assert call.message == "No auth token retrieved!"

    def test_on_stop(self, plugin: OAuth2ClientPlugin, call_options: dict[str, Any]) -> None:
        plugin.authenticate(PluginCall("authenticate", call_options))
        plugin.handle_on_stop()
        assert plugin.controller.service is None
        assert plugin.controller.auth_state is not None

    def test_mapping_handlers(self, plugin: OAuth2ClientPlugin) -> None:
        call = PluginCall("authenticate", {"android": {"customHandlerClass": "static"}})
        plugin.authenticate(call)
        assert call.result(timeout=5) == {"accessToken": "static-token"}

    def test_logout(self, plugin: OAuth2ClientPlugin, call_options: dict[str, Any]) -> None:
        plugin.authenticate(PluginCall("authenticate", call_options))
        call = PluginCall("logout")
        plugin.logout(call)
        assert call.status == CallStatus.RESOLVED
        assert not plugin.session_store.path.exists()

    def test_default_store_uses_namespace(self, isolated_config) -> None:
        with OAuth2ClientPlugin(BridgeSettings(session_namespace="Work", open_browser=False)) as plugin:
            assert plugin.session_store.namespace == "Work"
            assert plugin.settings.session_namespace == "Work"


class TestLaunchers:
    def _pending(self) -> PendingAuthorization:
        from oauthbridge.models import AuthorizationRequest, ResponseType, ServiceConfiguration

        request = AuthorizationRequest(
            correlation_id="cid",
            configuration=ServiceConfiguration(
                authorization_endpoint="https://idp/authorize",
                token_endpoint="https://idp/token",
            ),
            client_id="abc",
            response_type=ResponseType.TOKEN,
            redirect_uri="myapp:/",
        )
        return PendingAuthorization(request=request, url=request.to_url())

    def test_browser_launcher_foreground(self) -> None:
        pending = self._pending()
        with patch("oauthbridge.launcher.webbrowser.open", return_value=True) as mock_open:
            BrowserLauncher(background=False).launch(pending)
        mock_open.assert_called_once_with(pending.url)

    def test_null_launcher(self) -> None:
        with patch("oauthbridge.launcher.webbrowser.open") as mock_open:
            NullLauncher().launch(self._pending())
        mock_open.assert_not_called()
