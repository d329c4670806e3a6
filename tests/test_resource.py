"""Tests for the protected resource fetch and payload assembly."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from oauthbridge.exceptions import ResourceFetchError
from oauthbridge.models import BridgeSettings, TokenResult
from oauthbridge.resource import ResourceFetcher, build_token_payload


def _mock_httpx_get(text: str = "{}", status_code: int = 200) -> MagicMock:
    """Create a mock for httpx.get that returns *text*."""
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.status_code = status_code
    mock_response.text = text

    if status_code >= 400:
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            message=f"HTTP {status_code}",
            request=MagicMock(),
            response=mock_response,
        )
    else:
        mock_response.raise_for_status.return_value = None

    return mock_response


class TestResourceFetcher:
    def test_bearer_header(self) -> None:
        fetcher = ResourceFetcher(BridgeSettings(resource_timeout=5.0))
        with patch("oauthbridge.resource.httpx.get", return_value=_mock_httpx_get('{"a": 1}')) as mock_get:
            body = fetcher.fetch("https://api.example.com/me", "tok")

        assert body == '{"a": 1}'
        args, kwargs = mock_get.call_args
        assert args[0] == "https://api.example.com/me"
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["timeout"] == 5.0

    def test_non_2xx(self) -> None:
        fetcher = ResourceFetcher(BridgeSettings())
        with patch("oauthbridge.resource.httpx.get", return_value=_mock_httpx_get(status_code=401)):
            with pytest.raises(ResourceFetchError, match="401"):
                fetcher.fetch("https://api.example.com/me", "tok")

    def test_network_error(self) -> None:
        fetcher = ResourceFetcher(BridgeSettings())
        with patch(
            "oauthbridge.resource.httpx.get",
            side_effect=httpx.ConnectTimeout("timed out"),
        ):
            with pytest.raises(ResourceFetchError, match="timed out"):
                fetcher.fetch("https://api.example.com/me", "tok")

    def test_invalid_url(self) -> None:
        fetcher = ResourceFetcher(BridgeSettings())
        with patch(
            "oauthbridge.resource.httpx.get",
            side_effect=httpx.InvalidURL("Invalid IPv6 URL"),
        ):
            with pytest.raises(ResourceFetchError, match="Invalid IPv6 URL"):
                fetcher.fetch("http://[::1", "tok")


class TestBuildTokenPayload:
    def test_token_only(self) -> None:
        assert build_token_payload(TokenResult(access_token="a")) == {"accessToken": "a"}

    def test_id_token(self) -> None:
        payload = build_token_payload(TokenResult(access_token="a", id_token="i"))
        assert payload == {"accessToken": "a", "idToken": "i"}

    def test_json_object_merged(self) -> None:
        payload = build_token_payload(
            TokenResult(access_token="a", resource_response='{"email": "e@example.com"}')
        )
        assert payload == {"email": "e@example.com", "accessToken": "a"}

    def test_resource_cannot_override_token(self) -> None:
        payload = build_token_payload(
            TokenResult(access_token="a", resource_response='{"accessToken": "forged"}')
        )
        assert payload["accessToken"] == "a"

    def test_non_object_body(self) -> None:
        payload = build_token_payload(TokenResult(access_token="a", resource_response="hello"))
        assert payload == {"resourceResponse": "hello", "accessToken": "a"}

    def test_json_array_body(self) -> None:
        payload = build_token_payload(TokenResult(access_token="a", resource_response="[1, 2]"))
        assert payload["resourceResponse"] == "[1, 2]"
