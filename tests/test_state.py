"""Tests for AuthorizationState bookkeeping and token freshness."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from oauthbridge.auth.redirect import user_canceled
from oauthbridge.auth.state import AuthorizationState
from oauthbridge.exceptions import TokenExchangeError
from oauthbridge.models import (
    AuthorizationRequest,
    AuthorizationResponse,
    ResponseType,
    ServiceConfiguration,
    TokenSet,
)

CONFIG = ServiceConfiguration(
    authorization_endpoint="https://idp.example.com/authorize",
    token_endpoint="https://idp.example.com/token",
)


def _make_response(**kwargs: object) -> AuthorizationResponse:
    request = AuthorizationRequest(
        correlation_id="cid",
        configuration=CONFIG,
        client_id="client-123",
        response_type=ResponseType.TOKEN,
        redirect_uri="myapp:/",
    )
    defaults: dict[str, object] = {"request": request, "access_token": "implicit-token"}
    defaults.update(kwargs)
    return AuthorizationResponse(**defaults)  # type: ignore[arg-type]


def _expired() -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=5)


class TestUpdates:
    def test_response_sets_tokens(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_authorization(_make_response(id_token="idt"), None)
        assert state.is_authorized
        assert state.access_token == "implicit-token"
        assert state.id_token == "idt"

    def test_failure_hides_tokens(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_authorization(_make_response(), None)
        state.update_from_authorization(None, user_canceled())
        assert not state.is_authorized
        assert state.last_authorization_response is not None

    def test_new_response_clears_token_response(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(TokenSet(access_token="old", refresh_token="r"))
        state.update_from_authorization(_make_response(), None)
        assert state.last_token_response is None
        assert state.access_token == "implicit-token"

    def test_refresh_token_carried_over(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(TokenSet(access_token="a", refresh_token="r1"))
        state.update_from_token_response(TokenSet(access_token="b"))
        assert state.access_token == "b"
        assert state.refresh_token == "r1"


class TestFreshTokens:
    def test_valid_token_no_network(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_authorization(_make_response(id_token="idt"), None)
        service = MagicMock()
        assert state.fresh_tokens(service) == ("implicit-token", "idt")
        service.refresh.assert_not_called()

    def test_expired_with_refresh(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(
            TokenSet(access_token="old", refresh_token="r1", expires_at=_expired())
        )
        service = MagicMock()
        service.refresh.return_value = TokenSet(access_token="new", id_token="idt")
        assert state.fresh_tokens(service) == ("new", "idt")
        service.refresh.assert_called_once_with(CONFIG, "r1", None)
        assert state.refresh_token == "r1"

    def test_expired_without_refresh(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(TokenSet(access_token="old", expires_at=_expired()))
        with pytest.raises(TokenExchangeError, match="expired"):
            state.fresh_tokens(MagicMock())

    def test_short_lived_without_refresh(self) -> None:
        soon = datetime.now(timezone.utc) + timedelta(seconds=45)
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_authorization(_make_response(access_token_expires_at=soon), None)
        service = MagicMock()

        assert state.needs_token_refresh()
        assert not state.is_access_token_expired()
        assert state.fresh_tokens(service) == ("implicit-token", None)
        service.refresh.assert_not_called()

    def test_refresh_failure_recorded(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(
            TokenSet(access_token="old", refresh_token="r1", expires_at=_expired())
        )
        service = MagicMock()
        service.refresh.side_effect = TokenExchangeError("Token refresh failed")
        with pytest.raises(TokenExchangeError):
            state.fresh_tokens(service)
        assert state.authorization_failure is not None
        assert state.authorization_failure.error == "refresh_failed"

    def test_no_token(self) -> None:
        with pytest.raises(TokenExchangeError):
            AuthorizationState(configuration=CONFIG).fresh_tokens(MagicMock())

    def test_needs_refresh_within_margin(self) -> None:
        soon = datetime.now(timezone.utc) + timedelta(seconds=30)
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_token_response(TokenSet(access_token="a", expires_at=soon))
        assert state.needs_token_refresh()

    def test_persists_as_json(self) -> None:
        state = AuthorizationState(configuration=CONFIG)
        state.update_from_authorization(_make_response(), None)
        restored = AuthorizationState.model_validate_json(state.model_dump_json())
        assert restored.access_token == "implicit-token"
