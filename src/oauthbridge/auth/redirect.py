"""Parse the redirect that ends the user-facing authorization step.

The identity provider sends the user agent back to the request's redirect URI.
Implicit-flow results arrive in the URI fragment, code-flow results and
errors usually in the query string; both are merged here, the fragment
winning.

:func:`parse_redirect` returns exactly one of an
:class:`~oauthbridge.models.AuthorizationResponse` or an
:class:`~oauthbridge.models.AuthorizationFailure`.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import parse_qs, urlparse

from oauthbridge.models import (
    AuthorizationFailure,
    AuthorizationRequest,
    AuthorizationResponse,
    FailureType,
    ResponseType,
)

_KNOWN_PARAMS = frozenset(
    {
        "state",
        "token_type",
        "access_token",
        "expires_in",
        "id_token",
        "code",
        "scope",
    }
)


def _redirect_params(url: str) -> dict[str, str]:
    """Flatten query and fragment parameters of *url* into one dict."""
    parsed = urlparse(url)
    params: dict[str, str] = {}
    for component in (parsed.query, parsed.fragment):
        for key, values in parse_qs(component, keep_blank_values=True).items():
            params[key] = values[0]
    return params


def user_canceled() -> AuthorizationFailure:
    """The failure reported when the user dismissed the authorization UI."""
    return AuthorizationFailure(
        type=FailureType.USER_CANCELED,
        error="user_canceled",
        error_description="User canceled the authorization flow",
    )


def parse_redirect(
    request: AuthorizationRequest,
    redirect_url: Optional[str],
) -> tuple[Optional[AuthorizationResponse], Optional[AuthorizationFailure]]:
    """Interpret the redirect delivered for *request*.

    Args:
        request: The request the redirect answers.
        redirect_url: The full redirect URI, or ``None`` when the user
            dismissed the authorization UI without completing it.

    Returns:
        ``(response, None)`` on success, ``(None, failure)`` otherwise.
    """
    if redirect_url is None:
        return None, user_canceled()

    try:
        expected_scheme = urlparse(request.redirect_uri).scheme
        actual_scheme = urlparse(redirect_url).scheme
        params = _redirect_params(redirect_url)
    except ValueError as exc:
        return None, AuthorizationFailure(
            type=FailureType.INVALID_RESPONSE,
            error="invalid_redirect",
            error_description=f"Malformed redirect URI: {exc}",
        )

    if expected_scheme and actual_scheme != expected_scheme:
        return None, AuthorizationFailure(
            type=FailureType.INVALID_RESPONSE,
            error="invalid_redirect",
            error_description=(
                f"Redirect scheme '{actual_scheme}' does not match '{expected_scheme}'"
            ),
        )

    if "error" in params:
        return None, AuthorizationFailure(
            type=FailureType.AUTHORIZATION_ERROR,
            error=params["error"],
            error_description=params.get("error_description") or None,
            error_uri=params.get("error_uri") or None,
        )

    if request.state is not None:
        returned_state = params.get("state")
        if returned_state is None or not secrets.compare_digest(returned_state, request.state):
            return None, AuthorizationFailure(
                type=FailureType.STATE_MISMATCH,
                error="state_mismatch",
                error_description="Returned state does not match the request",
            )

    if request.response_type == ResponseType.CODE:
        if not params.get("code"):
            return None, AuthorizationFailure(
                type=FailureType.INVALID_RESPONSE,
                error="invalid_response",
                error_description="Redirect carries no authorization code",
            )
    elif not params.get("access_token"):
        return None, AuthorizationFailure(
            type=FailureType.INVALID_RESPONSE,
            error="invalid_response",
            error_description="Redirect carries no access token",
        )

    expires_at = None
    expires_in = params.get("expires_in")
    if expires_in:
        try:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
        except ValueError:
            expires_at = None

    return (
        AuthorizationResponse(
            request=request,
            state=params.get("state"),
            token_type=params.get("token_type"),
            access_token=params.get("access_token") or None,
            access_token_expires_at=expires_at,
            id_token=params.get("id_token") or None,
            authorization_code=params.get("code") or None,
            scope=params.get("scope") or None,
            additional_parameters={
                k: v for k, v in params.items() if k not in _KNOWN_PARAMS
            },
        ),
        None,
    )
