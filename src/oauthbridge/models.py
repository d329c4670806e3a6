"""Canonical Pydantic models shared across all oauthbridge modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Settings** -- serialised as JSON in the user's config directory:
    :class:`CodeFlowPolicy`, :class:`HandlerFailurePolicy`, and
    :class:`BridgeSettings`.

**Call options** -- extracted from the caller's payload:
    :class:`ResponseType` and :class:`AuthConfig`.

**Protocol artifacts** -- produced and consumed by the authorization flow and
persisted by the session store:
    :class:`ServiceConfiguration`, :class:`AuthorizationRequest`,
    :class:`PendingAuthorization`, :class:`AuthorizationResponse`, :class:`FailureType`,
    :class:`AuthorizationFailure`, :class:`TokenSet`, :class:`TokenResult`,
    and :class:`PendingCallRecord`.

All models use Pydantic v2. Call-facing models accept the caller's camelCase
keys through aliases while exposing snake_case attributes.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field


# --- Settings ---


class CodeFlowPolicy(str, enum.Enum):
    """What to do when a caller asks for the authorization-code response type."""

    IMPLICIT = "implicit"
    """Log that the code flow is unsupported and fall back to ``token``."""

    REJECT = "reject"
    """Reject the call with a validation error."""

    PKCE = "pkce"
    """Honour the code flow and protect it with a PKCE S256 challenge."""


class HandlerFailurePolicy(str, enum.Enum):
    """What to do when a configured custom handler cannot be resolved."""

    REJECT = "reject"
    LEAVE_PENDING = "leave_pending"


class BridgeSettings(BaseModel):
    """User-wide settings persisted at ``~/.config/oauthbridge/config.json``.

    Loaded and saved by :func:`~oauthbridge.config.load_settings` and
    :func:`~oauthbridge.config.save_settings`. Environment variables and CLI
    flags take precedence; see :func:`~oauthbridge.config.resolve_settings`.
    """

    platform: str = Field(
        default="android",
        description="Prefix of platform-specific override keys (e.g. 'android.appId')",
    )
    session_namespace: str = Field(
        default="OAuth2Client",
        description="Name of the persisted session namespace erased on logout",
    )
    code_flow: CodeFlowPolicy = Field(
        default=CodeFlowPolicy.IMPLICIT,
        description="Handling of responseType 'code': implicit, reject, pkce",
    )
    handler_failure: HandlerFailurePolicy = Field(
        default=HandlerFailurePolicy.REJECT,
        description="Handling of unresolvable custom handlers: reject, leave_pending",
    )
    distinguish_cancel: bool = Field(
        default=False,
        description="Report user-cancel and authorization errors as distinct rejections",
    )
    token_timeout: Optional[float] = Field(
        default=30.0, description="Token endpoint timeout in seconds (None = no timeout)"
    )
    resource_timeout: Optional[float] = Field(
        default=30.0, description="Resource request timeout in seconds (None = no timeout)"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    open_browser: bool = Field(
        default=True, description="Open the authorization URL in the system browser"
    )


# --- Call options ---


class ResponseType(str, enum.Enum):
    """OAuth2 ``response_type`` values understood by the bridge."""

    TOKEN = "token"
    CODE = "code"


class AuthConfig(BaseModel):
    """Validated options of one ``authenticate`` call.

    Platform-specific overrides have already been applied by
    :func:`~oauthbridge.options.extract_auth_config`; instances are frozen
    for the lifetime of the invocation.

    Example::

        AuthConfig(
            appId="abc",
            authorizationBaseUrl="https://idp/authorize",
            accessTokenEndpoint="https://idp/token",
            customScheme="myapp",
        )
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    app_id: str = Field(alias="appId")
    authorization_base_url: str = Field(alias="authorizationBaseUrl")
    access_token_endpoint: str = Field(alias="accessTokenEndpoint")
    custom_scheme: str = Field(alias="customScheme")
    response_type: Optional[str] = Field(default=None, alias="responseType")
    scope: Optional[str] = None
    state: Optional[str] = None
    resource_url: Optional[str] = Field(default=None, alias="resourceUrl")
    custom_handler_class: Optional[str] = Field(default=None, alias="customHandlerClass")

    @property
    def redirect_uri(self) -> str:
        """The redirect URI derived from :attr:`custom_scheme`.

        A bare scheme such as ``myapp`` becomes ``myapp:/``; a value that
        already contains ``:`` is used verbatim.
        """
        if ":" in self.custom_scheme:
            return self.custom_scheme
        return f"{self.custom_scheme}:/"


# --- Protocol artifacts ---


class ServiceConfiguration(BaseModel):
    """Authorization and token endpoint pair of one identity provider."""

    authorization_endpoint: str
    token_endpoint: str


class AuthorizationRequest(BaseModel):
    """A built authorization request waiting for the user-facing step.

    ``correlation_id`` is the opaque token handed to the launcher; the resume
    entry point uses it to find this request again.
    """

    correlation_id: str
    configuration: ServiceConfiguration
    client_id: str
    response_type: ResponseType
    redirect_uri: str
    scope: Optional[str] = None
    state: Optional[str] = None
    code_verifier: Optional[str] = None
    code_challenge: Optional[str] = None

    def to_url(self) -> str:
        """Return the full authorization URL for this request."""
        params: dict[str, str] = {
            "response_type": self.response_type.value,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
        }
        if self.scope:
            params["scope"] = self.scope
        if self.state:
            params["state"] = self.state
        if self.code_challenge:
            params["code_challenge"] = self.code_challenge
            params["code_challenge_method"] = "S256"

        endpoint = self.configuration.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"


class PendingAuthorization(BaseModel):
    """Descriptor emitted when the flow suspends at the authorization UI.

    The host opens :attr:`url` and later calls the resume entry point with
    :attr:`correlation_id` and the redirect it received.
    """

    request: AuthorizationRequest
    url: str

    @property
    def correlation_id(self) -> str:
        return self.request.correlation_id


class AuthorizationResponse(BaseModel):
    """The successful outcome of the user-facing authorization step."""

    request: AuthorizationRequest
    state: Optional[str] = None
    token_type: Optional[str] = None
    access_token: Optional[str] = None
    access_token_expires_at: Optional[datetime] = None
    id_token: Optional[str] = None
    authorization_code: Optional[str] = None
    scope: Optional[str] = None
    additional_parameters: dict[str, str] = Field(default_factory=dict)


class FailureType(str, enum.Enum):
    """Categories of :class:`AuthorizationFailure`."""

    USER_CANCELED = "user_canceled"
    AUTHORIZATION_ERROR = "authorization_error"
    STATE_MISMATCH = "state_mismatch"
    INVALID_RESPONSE = "invalid_response"


class AuthorizationFailure(BaseModel):
    """The unsuccessful outcome of the user-facing authorization step."""

    type: FailureType
    error: str
    error_description: Optional[str] = None
    error_uri: Optional[str] = None

    @property
    def is_user_cancel(self) -> bool:
        return self.type == FailureType.USER_CANCELED

    def describe(self) -> str:
        """Return ``error`` with its description appended when present."""
        if self.error_description:
            return f"{self.error} - {self.error_description}"
        return self.error


class TokenSet(BaseModel):
    """Tokens returned by a token endpoint or an implicit-flow redirect."""

    access_token: str
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> "TokenSet":
        """Build a token set from a token endpoint JSON body.

        ``expires_in`` is converted to an absolute UTC ``expires_at`` so the
        value stays meaningful after the session is persisted.
        """
        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type"),
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_at=expires_at,
            scope=data.get("scope"),
        )

    @classmethod
    def from_authorization_response(cls, response: AuthorizationResponse) -> "TokenSet":
        """Build a token set from an implicit-flow response that already carries a token."""
        if not response.access_token:
            raise ValueError("Authorization response carries no access token")
        return cls(
            access_token=response.access_token,
            token_type=response.token_type,
            id_token=response.id_token,
            expires_at=response.access_token_expires_at,
            scope=response.scope,
        )


class TokenResult(BaseModel):
    """Terminal artifact delivered to the caller."""

    access_token: str
    id_token: Optional[str] = None
    resource_response: Optional[Any] = None


class PendingCallRecord(BaseModel):
    """Persisted form of a call suspended at the authorization UI boundary."""

    callback_id: str
    method_name: str
    options: dict[str, Any] = Field(default_factory=dict)
    request: AuthorizationRequest
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
