"""Authorization service -- request URLs, token exchange, and token refresh.

This module provides :class:`AuthorizationService`, the handle the flow
controller opens when it issues an authorization request and disposes when
the round trip completes, a new request supersedes it, or the host is
suspended. The handle owns an :class:`httpx.Client` connection pool; once
disposed, any further token request fails with
:class:`~oauthbridge.exceptions.TokenExchangeError`.

Also exports :func:`generate_pkce_pair`, used when the code flow is enabled
with the ``pkce`` policy.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from typing import Any, Optional

import httpx

from oauthbridge.exceptions import TokenExchangeError
from oauthbridge.models import (
    AuthorizationRequest,
    AuthorizationResponse,
    BridgeSettings,
    ServiceConfiguration,
    TokenSet,
)

logger = logging.getLogger(__name__)


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


class AuthorizationService:
    """A disposable handle for talking to one identity provider.

    Args:
        settings: Bridge settings supplying the token timeout and SSL
            verification flag.
        transport: Optional :mod:`httpx` transport (tests pass an
            :class:`httpx.MockTransport`).

    Example::

        with AuthorizationService(settings) as service:
            tokens = service.exchange_code(response)
    """

    def __init__(
        self,
        settings: BridgeSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(
            timeout=settings.token_timeout,
            verify=settings.verify_ssl,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._disposed = False

    def __enter__(self) -> AuthorizationService:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Close the connection pool. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._client.close()
        logger.debug("Authorization service disposed")

    def authorization_request_url(self, request: AuthorizationRequest) -> str:
        """Return the URL the user agent must open for *request*."""
        self._ensure_live()
        return request.to_url()

    def exchange_code(self, response: AuthorizationResponse) -> TokenSet:
        """Exchange the authorization code carried by *response* for tokens.

        Raises:
            TokenExchangeError: If the response has no code, the request
                fails, or the token response is malformed.
        """
        if not response.authorization_code:
            raise TokenExchangeError("Authorization response carries no code to exchange")

        request = response.request
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "code": response.authorization_code,
            "redirect_uri": request.redirect_uri,
            "client_id": request.client_id,
        }
        if request.code_verifier:
            data["code_verifier"] = request.code_verifier

        return self._token_request(request.configuration.token_endpoint, data, "Token exchange")

    def refresh(
        self,
        configuration: ServiceConfiguration,
        refresh_token: str,
        client_id: Optional[str] = None,
    ) -> TokenSet:
        """Obtain a new access token with *refresh_token*.

        Raises:
            TokenExchangeError: If the request fails or the response lacks
                ``access_token``.
        """
        data: dict[str, str] = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        if client_id:
            data["client_id"] = client_id

        return self._token_request(configuration.token_endpoint, data, "Token refresh")

    def _ensure_live(self) -> None:
        if self._disposed:
            raise TokenExchangeError("Authorization service has been disposed")

    def _token_request(self, endpoint: str, data: dict[str, str], action: str) -> TokenSet:
        self._ensure_live()
        logger.debug("%s request to %s", action, endpoint)
        try:
            response = self._client.post(endpoint, data=data)
            response.raise_for_status()
            token_data: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as exc:
            raise TokenExchangeError(
                f"{action} failed with status {exc.response.status_code}: "
                f"{exc.response.text}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"{action} failed: {exc}") from exc
        except RuntimeError as exc:
            # httpx raises RuntimeError when the client was closed mid-flight.
            raise TokenExchangeError(f"{action} failed: {exc}") from exc
        except ValueError as exc:
            raise TokenExchangeError(f"{action} returned invalid JSON: {exc}") from exc

        if not isinstance(token_data, dict) or "access_token" not in token_data:
            raise TokenExchangeError(f"{action} response missing 'access_token' field")

        return TokenSet.from_token_response(token_data)
