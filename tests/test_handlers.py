"""Tests for the custom handler registry."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

from oauthbridge.call import PluginCall
from oauthbridge.exceptions import HandlerResolutionError
from oauthbridge.handlers import (
    ENTRY_POINT_GROUP,
    AccessTokenCallback,
    CustomHandler,
    HandlerContext,
    HandlerRegistry,
)


class _TokenHandler(CustomHandler):
    def fetch_access_token(
        self, context: HandlerContext, call: PluginCall, callback: AccessTokenCallback
    ) -> None:
        callback.on_success("t")

    def logout(self, call: PluginCall) -> bool:
        return True


class _BrokenConstructorHandler(_TokenHandler):
    def __init__(self) -> None:
        raise RuntimeError("needs an SDK key")


class TestHandlerRegistry:
    def test_resolve_registered(self) -> None:
        registry = HandlerRegistry({"token": _TokenHandler})
        assert isinstance(registry.resolve("token"), _TokenHandler)
        assert "token" in registry
        assert registry.names() == ["token"]

    def test_resolve_returns_new_instance(self) -> None:
        registry = HandlerRegistry({"token": _TokenHandler})
        assert registry.resolve("token") is not registry.resolve("token")

    def test_unknown_name(self) -> None:
        registry = HandlerRegistry({"token": _TokenHandler})
        with pytest.raises(HandlerResolutionError, match="Available handlers: token"):
            registry.resolve("other")

    def test_constructor_failure(self) -> None:
        registry = HandlerRegistry({"broken": _BrokenConstructorHandler})
        with pytest.raises(HandlerResolutionError, match="needs an SDK key"):
            registry.resolve("broken")

    def test_register_replaces(self) -> None:
        registry = HandlerRegistry({"h": _BrokenConstructorHandler})
        registry.register("h", _TokenHandler)
        assert isinstance(registry.resolve("h"), _TokenHandler)


class TestHandlerDiscovery:
    """Entry-point-based handler discovery."""

    def _make_entry_point(self, name: str, handler_cls: Any) -> Any:
        class MockEP:
            def __init__(self, n: str, cls: Any) -> None:
                self.name = n
                self._cls = cls

            def load(self) -> Any:
                return self._cls

        return MockEP(name, handler_cls)

    def test_discover_registers_handlers(self) -> None:
        registry = HandlerRegistry()
        eps = [self._make_entry_point("acme", _TokenHandler)]

        with patch(
            "oauthbridge.handlers.registry.importlib.metadata.entry_points", return_value=eps
        ) as mock_eps:
            loaded = registry.discover()

        mock_eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        assert loaded == ["acme"]
        assert isinstance(registry.resolve("acme"), _TokenHandler)

    def test_discover_skips_non_handlers(self) -> None:
        registry = HandlerRegistry()
        eps = [
            self._make_entry_point("not-a-class", "nope"),
            self._make_entry_point("wrong-class", dict),
        ]

        with patch("oauthbridge.handlers.registry.importlib.metadata.entry_points", return_value=eps):
            assert registry.discover() == []

    def test_discover_handles_broken_entry_point(self) -> None:
        class BrokenEP:
            name = "broken"

            def load(self) -> type:
                raise ImportError("missing dependency")

        registry = HandlerRegistry()
        eps = [BrokenEP(), self._make_entry_point("acme", _TokenHandler)]

        with patch("oauthbridge.handlers.registry.importlib.metadata.entry_points", return_value=eps):
            loaded = registry.discover()

        assert loaded == ["acme"]
        assert "broken" not in registry
