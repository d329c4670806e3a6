"""Authorization state carried across the asynchronous round trip.

:class:`AuthorizationState` records the provider configuration, the last
authorization response or failure, and the latest token set. It is owned by
exactly one :class:`~oauthbridge.flow.AuthorizationFlowController` and
mutated only through the ``update_*`` methods and :meth:`fresh_tokens`.

The state is a Pydantic model so that the session store can persist it and a
resume in a fresh process can restore it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

from oauthbridge.exceptions import TokenExchangeError
from oauthbridge.models import (
    AuthorizationFailure,
    AuthorizationResponse,
    FailureType,
    ServiceConfiguration,
    TokenSet,
)

if TYPE_CHECKING:
    from oauthbridge.auth.service import AuthorizationService

EXPIRY_SAFETY_MARGIN = timedelta(seconds=60)
"""Tokens expiring within this window are refreshed before use."""


class AuthorizationState(BaseModel):
    """Current authorization status for one provider configuration."""

    configuration: ServiceConfiguration
    last_authorization_response: Optional[AuthorizationResponse] = None
    last_token_response: Optional[TokenSet] = None
    authorization_failure: Optional[AuthorizationFailure] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def access_token(self) -> Optional[str]:
        if self.authorization_failure is not None:
            return None
        if self.last_token_response is not None:
            return self.last_token_response.access_token
        if self.last_authorization_response is not None:
            return self.last_authorization_response.access_token
        return None

    @property
    def id_token(self) -> Optional[str]:
        if self.authorization_failure is not None:
            return None
        if self.last_token_response is not None and self.last_token_response.id_token:
            return self.last_token_response.id_token
        if self.last_authorization_response is not None:
            return self.last_authorization_response.id_token
        return None

    @property
    def refresh_token(self) -> Optional[str]:
        if self.last_token_response is not None:
            return self.last_token_response.refresh_token
        return None

    @property
    def access_token_expires_at(self) -> Optional[datetime]:
        if self.last_token_response is not None:
            return self.last_token_response.expires_at
        if self.last_authorization_response is not None:
            return self.last_authorization_response.access_token_expires_at
        return None

    @property
    def is_authorized(self) -> bool:
        return self.access_token is not None

    def _expires_at_utc(self) -> Optional[datetime]:
        expires_at = self.access_token_expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at

    def needs_token_refresh(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when the access token is missing or about to expire."""
        if self.access_token is None:
            return True
        expires_at = self._expires_at_utc()
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= expires_at - EXPIRY_SAFETY_MARGIN

    def is_access_token_expired(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` once the access token is past its expiry, ignoring the margin."""
        expires_at = self._expires_at_utc()
        if expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= expires_at

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_from_authorization(
        self,
        response: Optional[AuthorizationResponse],
        failure: Optional[AuthorizationFailure],
    ) -> None:
        """Record the outcome of the user-facing authorization step.

        A failure is recorded without touching the previous response. A
        response replaces the previous one and discards tokens obtained for
        it.
        """
        if failure is not None:
            self.authorization_failure = failure
            return
        if response is None:
            return
        self.last_authorization_response = response
        self.last_token_response = None
        self.authorization_failure = None

    def update_from_token_response(
        self,
        tokens: Optional[TokenSet],
        failure: Optional[AuthorizationFailure] = None,
    ) -> None:
        """Record the outcome of a token exchange or refresh."""
        if failure is not None:
            self.authorization_failure = failure
            return
        if tokens is None:
            return
        previous_refresh = self.refresh_token
        if tokens.refresh_token is None and previous_refresh is not None:
            # Providers may omit the refresh token on refresh responses.
            tokens = tokens.model_copy(update={"refresh_token": previous_refresh})
        self.last_token_response = tokens
        self.authorization_failure = None

    def fresh_tokens(self, service: AuthorizationService) -> tuple[str, Optional[str]]:
        """Return ``(access_token, id_token)``, refreshing first if required.

        Performs a network refresh through *service* only when the access
        token is expired (or about to) and a refresh token is available.
        Without a refresh token, a token inside the safety margin is still
        returned as long as it has not actually expired.

        Raises:
            TokenExchangeError: If no usable access token exists and none can
                be obtained by refreshing.
        """
        if self.needs_token_refresh():
            if self.refresh_token:
                client_id = None
                if self.last_authorization_response is not None:
                    client_id = self.last_authorization_response.request.client_id
                try:
                    tokens = service.refresh(self.configuration, self.refresh_token, client_id)
                except TokenExchangeError as exc:
                    self.update_from_token_response(
                        None,
                        AuthorizationFailure(
                            type=FailureType.AUTHORIZATION_ERROR,
                            error="refresh_failed",
                            error_description=str(exc),
                        ),
                    )
                    raise
                self.update_from_token_response(tokens)
            elif self.access_token is None:
                raise TokenExchangeError("No access token available and no refresh token to obtain one")
            elif self.is_access_token_expired():
                raise TokenExchangeError("Access token expired and no refresh token is available")

        access_token = self.access_token
        if access_token is None:
            raise TokenExchangeError("No access token available")
        return access_token, self.id_token
