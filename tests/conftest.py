"""Shared test fixtures for oauthbridge.

Provides isolated config/data directories, a session store in a temporary
directory, call option payloads, and an ``httpx.MockTransport`` token
endpoint. These fixtures are automatically discovered by pytest.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx
import pytest

from oauthbridge.models import BridgeSettings
from oauthbridge.output import reset_output
from oauthbridge.session import SessionStore


AUTH_URL = "https://idp.example.com/authorize"
TOKEN_URL = "https://idp.example.com/token"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Drop handlers installed by configure_logging.

    Those handlers hold the console of the test that installed them, whose
    streams may be closed by the time a later test logs.
    """
    yield
    logger = logging.getLogger("oauthbridge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and session data to a temporary directory.

    Forces XDG path resolution, points XDG_CONFIG_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, clears all OAUTHBRIDGE_* variables, and
    changes the working directory to tmp_path.
    """
    monkeypatch.setattr("oauthbridge.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "OAUTHBRIDGE_PLATFORM",
        "OAUTHBRIDGE_NAMESPACE",
        "OAUTHBRIDGE_CODE_FLOW",
        "OAUTHBRIDGE_HANDLER_FAILURE",
        "OAUTHBRIDGE_DISTINGUISH_CANCEL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def store(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> SessionStore:
    """A SessionStore writing to a temp directory."""
    monkeypatch.setattr("oauthbridge.session.get_data_dir", lambda: tmp_path)
    return SessionStore("OAuth2Client")


@pytest.fixture
def settings() -> BridgeSettings:
    """Default settings with the browser disabled."""
    return BridgeSettings(open_browser=False)


# ---------------------------------------------------------------------------
# Call options
# ---------------------------------------------------------------------------


@pytest.fixture
def call_options() -> dict[str, Any]:
    """A complete implicit-flow option payload."""
    return {
        "appId": "client-123",
        "authorizationBaseUrl": AUTH_URL,
        "accessTokenEndpoint": TOKEN_URL,
        "scope": "openid email",
        "state": "xyz",
        "android": {"customScheme": "myapp"},
    }


# ---------------------------------------------------------------------------
# Token endpoint
# ---------------------------------------------------------------------------


class TokenEndpoint:
    """Records token requests and answers with a configurable JSON body."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict[str, Any] = {
            "access_token": "exchanged-token",
            "token_type": "Bearer",
            "expires_in": 3600,
            "id_token": "exchanged-id",
            "refresh_token": "refresh-1",
        }

    def form(self, index: int = -1) -> dict[str, str]:
        """Decoded form body of a recorded request."""
        content = self.requests[index].content.decode()
        return dict(httpx.QueryParams(content))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=json.dumps(self.body))


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    return TokenEndpoint()


@pytest.fixture
def transport(token_endpoint: TokenEndpoint) -> httpx.MockTransport:
    return httpx.MockTransport(token_endpoint)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()

