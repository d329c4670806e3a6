"""Tests for redirect parsing."""

from __future__ import annotations

from oauthbridge.auth.redirect import parse_redirect, user_canceled
from oauthbridge.models import (
    AuthorizationRequest,
    FailureType,
    ResponseType,
    ServiceConfiguration,
)


def _make_request(**kwargs: object) -> AuthorizationRequest:
    defaults: dict[str, object] = {
        "correlation_id": "cid",
        "configuration": ServiceConfiguration(
            authorization_endpoint="https://idp.example.com/authorize",
            token_endpoint="https://idp.example.com/token",
        ),
        "client_id": "client-123",
        "response_type": ResponseType.TOKEN,
        "redirect_uri": "myapp:/",
        "state": "xyz",
    }
    defaults.update(kwargs)
    return AuthorizationRequest(**defaults)  # type: ignore[arg-type]


class TestImplicitRedirect:
    def test_fragment_tokens(self) -> None:
        request = _make_request()
        response, failure = parse_redirect(
            request,
            "myapp:/#access_token=tok&token_type=Bearer&id_token=idt&state=xyz&expires_in=3600",
        )
        assert failure is None
        assert response is not None
        assert response.access_token == "tok"
        assert response.id_token == "idt"
        assert response.token_type == "Bearer"
        assert response.access_token_expires_at is not None
        assert response.request is request

    def test_extra_params_kept(self) -> None:
        response, _ = parse_redirect(_make_request(), "myapp:/#access_token=tok&state=xyz&foo=bar")
        assert response is not None
        assert response.additional_parameters == {"foo": "bar"}

    def test_missing_token(self) -> None:
        response, failure = parse_redirect(_make_request(), "myapp:/#state=xyz")
        assert response is None
        assert failure is not None
        assert failure.type == FailureType.INVALID_RESPONSE

    def test_bad_expires_in_ignored(self) -> None:
        response, _ = parse_redirect(
            _make_request(), "myapp:/#access_token=tok&state=xyz&expires_in=soon"
        )
        assert response is not None
        assert response.access_token_expires_at is None


class TestCodeRedirect:
    def test_query_code(self) -> None:
        request = _make_request(response_type=ResponseType.CODE)
        response, failure = parse_redirect(request, "myapp:/?code=abc&state=xyz")
        assert failure is None
        assert response is not None
        assert response.authorization_code == "abc"
        assert response.access_token is None

    def test_missing_code(self) -> None:
        request = _make_request(response_type=ResponseType.CODE)
        response, failure = parse_redirect(request, "myapp:/?state=xyz")
        assert response is None
        assert failure is not None
        assert failure.error_description == "Redirect carries no authorization code"


class TestFailures:
    def test_cancel(self) -> None:
        response, failure = parse_redirect(_make_request(), None)
        assert response is None
        assert failure == user_canceled()
        assert failure.is_user_cancel

    def test_provider_error(self) -> None:
        response, failure = parse_redirect(
            _make_request(),
            "myapp:/?error=access_denied&error_description=User+said+no&state=xyz",
        )
        assert response is None
        assert failure is not None
        assert failure.type == FailureType.AUTHORIZATION_ERROR
        assert failure.describe() == "access_denied - User said no"
        assert not failure.is_user_cancel

    def test_state_mismatch(self) -> None:
        response, failure = parse_redirect(_make_request(), "myapp:/#access_token=tok&state=evil")
        assert response is None
        assert failure is not None
        assert failure.type == FailureType.STATE_MISMATCH

    def test_missing_state(self) -> None:
        _, failure = parse_redirect(_make_request(), "myapp:/#access_token=tok")
        assert failure is not None
        assert failure.type == FailureType.STATE_MISMATCH

    def test_no_state_requested(self) -> None:
        response, failure = parse_redirect(
            _make_request(state=None), "myapp:/#access_token=tok"
        )
        assert failure is None
        assert response is not None

    def test_scheme_mismatch(self) -> None:
        _, failure = parse_redirect(_make_request(), "otherapp:/#access_token=tok&state=xyz")
        assert failure is not None
        assert failure.error == "invalid_redirect"

    def test_malformed_uri(self) -> None:
        response, failure = parse_redirect(
            _make_request(), "myapp://[bad/#access_token=tok&state=xyz"
        )
        assert response is None
        assert failure is not None
        assert failure.type == FailureType.INVALID_RESPONSE
        assert failure.error == "invalid_redirect"
