"""Authorization flow controller and session lifecycle.

:class:`AuthorizationFlowController` drives one OAuth2 round trip as an
explicit two-phase continuation:

1. :meth:`~AuthorizationFlowController.authenticate` validates the call,
   builds an :class:`~oauthbridge.models.AuthorizationRequest`, records the
   call as pending (in memory and in the session store), hands a
   :class:`~oauthbridge.models.PendingAuthorization` to the launcher, and
   returns. Control now belongs to the user-facing authorization step.
2. :meth:`~AuthorizationFlowController.resume` takes the correlation id and
   the redirect that came back, updates the authorization state, and
   finishes the flow on a background worker: token exchange, fresh tokens,
   optional resource fetch, resolve.

Because the pending call is persisted, phase two also works in a process that
never saw phase one.

States::

    IDLE -> REQUEST_BUILT -> AWAITING_USER_AUTH -> TOKEN_EXCHANGE
         -> RESOURCE_FETCH (optional) -> RESOLVED
    REJECTED is reachable from every state.

Concurrency: a single logical flow per controller. A second
:meth:`~AuthorizationFlowController.authenticate` disposes the live service
handle; a token exchange still running on that handle then fails and
rejects its own call.
"""

from __future__ import annotations

import enum
import logging
import secrets
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import NamedTuple, Optional

import httpx

from oauthbridge.auth.redirect import parse_redirect
from oauthbridge.auth.service import AuthorizationService, generate_pkce_pair
from oauthbridge.auth.state import AuthorizationState
from oauthbridge.call import PluginCall
from oauthbridge.exceptions import (
    AuthCancelledError,
    AuthFailedError,
    BridgeError,
    HandlerResolutionError,
    TokenExchangeError,
    ValidationError,
)
from oauthbridge.handlers.base import AccessTokenCallback, HandlerContext
from oauthbridge.handlers.registry import HandlerRegistry
from oauthbridge.launcher import AuthorizationLauncher, NullLauncher
from oauthbridge.models import (
    AuthConfig,
    AuthorizationFailure,
    AuthorizationRequest,
    AuthorizationResponse,
    BridgeSettings,
    CodeFlowPolicy,
    HandlerFailurePolicy,
    PendingAuthorization,
    PendingCallRecord,
    ResponseType,
    ServiceConfiguration,
    TokenResult,
    TokenSet,
)
from oauthbridge.options import (
    PARAM_RESOURCE_URL,
    extract_auth_config,
    extract_handler_name,
    get_call_param,
)
from oauthbridge.resource import ResourceFetcher, build_token_payload
from oauthbridge.session import SessionStore

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = "No auth token retrieved!"
LOGIN_CANCELED_MESSAGE = "Login canceled!"
LOGIN_FAILED_MESSAGE = "Login failed!"
LOGOUT_FAILED_MESSAGE = "Logout was not successful"


class FlowState(str, enum.Enum):
    IDLE = "idle"
    REQUEST_BUILT = "request_built"
    AWAITING_USER_AUTH = "awaiting_user_auth"
    TOKEN_EXCHANGE = "token_exchange"
    RESOURCE_FETCH = "resource_fetch"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class _PendingCall(NamedTuple):
    call: PluginCall
    request: AuthorizationRequest


class _HandlerTokenCallback(AccessTokenCallback):
    """Maps custom handler outcomes onto the originating call."""

    def __init__(self, controller: AuthorizationFlowController, call: PluginCall) -> None:
        self._controller = controller
        self._call = call

    def on_success(self, access_token: str) -> None:
        self._controller._submit_delivery(self._call, access_token, None)

    def on_cancel(self) -> None:
        self._controller._reject(self._call, AuthCancelledError(LOGIN_CANCELED_MESSAGE))

    def on_error(self, error: Exception) -> None:
        logger.error("Login failed: %s", error, exc_info=error)
        self._controller._reject(self._call, AuthFailedError(LOGIN_FAILED_MESSAGE))


class AuthorizationFlowController:
    """Owns the authorization state and drives calls through the flow.

    Args:
        settings: Flow policies, timeouts, and the override prefix.
        session_store: Persistence for pending calls and authorization state.
        registry: Custom handlers selectable by the
            ``<platform>.customHandlerClass`` option.
        launcher: Starts the user-facing authorization step.
        executor: Runs token exchange and resource fetch. A private
            two-worker pool is created (and shut down by :meth:`close`)
            when omitted.
        transport: Optional :mod:`httpx` transport for the token endpoint.
        fetcher: Resource fetcher; built from *settings* when omitted.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        session_store: SessionStore,
        registry: Optional[HandlerRegistry] = None,
        launcher: Optional[AuthorizationLauncher] = None,
        executor: Optional[Executor] = None,
        transport: Optional[httpx.BaseTransport] = None,
        fetcher: Optional[ResourceFetcher] = None,
    ) -> None:
        self._settings = settings
        self._store = session_store
        self._registry = registry or HandlerRegistry()
        self._launcher = launcher or NullLauncher()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="oauthbridge"
        )
        self._transport = transport
        self._fetcher = fetcher or ResourceFetcher(settings)

        self._service: Optional[AuthorizationService] = None
        self._auth_state: Optional[AuthorizationState] = None
        self._pending: dict[str, _PendingCall] = {}
        self._flow_state = FlowState.IDLE

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def flow_state(self) -> FlowState:
        return self._flow_state

    @property
    def auth_state(self) -> Optional[AuthorizationState]:
        return self._auth_state

    @property
    def service(self) -> Optional[AuthorizationService]:
        """The live service handle, or ``None`` when none is open."""
        return self._service

    def pending_ids(self) -> list[str]:
        """Correlation ids of calls suspended in this process."""
        return list(self._pending)

    # ------------------------------------------------------------------
    # Phase one
    # ------------------------------------------------------------------

    def authenticate(self, call: PluginCall) -> Optional[PendingAuthorization]:
        """Start authorizing *call*.

        Returns:
            The pending request descriptor when the built-in flow suspended
            at the authorization UI; ``None`` when the call was rejected or
            delegated to a custom handler.
        """
        self._dispose_service()

        handler_name = extract_handler_name(call.data, self._settings.platform)
        if handler_name:
            self._delegate_fetch(call, handler_name)
            return None

        try:
            config = extract_auth_config(call.data, self._settings.platform)
            request = self._build_request(config)
        except ValidationError as exc:
            self._reject(call, exc)
            return None
        self._flow_state = FlowState.REQUEST_BUILT

        if self._auth_state is None:
            self._auth_state = AuthorizationState(configuration=request.configuration)

        self._service = self._new_service()
        pending = PendingAuthorization(
            request=request,
            url=self._service.authorization_request_url(request),
        )
        self._pending[request.correlation_id] = _PendingCall(call, request)
        self._store.put_pending(
            PendingCallRecord(
                callback_id=call.callback_id,
                method_name=call.method_name,
                options=call.data,
                request=request,
            )
        )
        self._store.save_state(self._auth_state)

        try:
            self._launcher.launch(pending)
        except Exception as exc:
            logger.exception("Could not launch the authorization step")
            self._forget_pending(request.correlation_id)
            self._reject(call, AuthFailedError(f"Could not launch authorization: {exc}"))
            return None

        self._flow_state = FlowState.AWAITING_USER_AUTH
        logger.debug("Awaiting user authorization for request %s", request.correlation_id)
        return pending

    def _build_request(self, config: AuthConfig) -> AuthorizationRequest:
        response_type = ResponseType.TOKEN
        code_verifier = code_challenge = None

        if config.response_type == ResponseType.CODE.value:
            policy = self._settings.code_flow
            if policy == CodeFlowPolicy.REJECT:
                raise ValidationError(
                    "Response type 'code' is not enabled (code_flow policy is 'reject')"
                )
            if policy == CodeFlowPolicy.PKCE:
                response_type = ResponseType.CODE
                code_verifier, code_challenge = generate_pkce_pair()
            else:
                logger.info(
                    "Code flow with PKCE is not supported yet, using response type 'token'"
                )

        return AuthorizationRequest(
            correlation_id=secrets.token_urlsafe(16),
            configuration=ServiceConfiguration(
                authorization_endpoint=config.authorization_base_url,
                token_endpoint=config.access_token_endpoint,
            ),
            client_id=config.app_id,
            response_type=response_type,
            redirect_uri=config.redirect_uri,
            scope=config.scope,
            state=config.state or secrets.token_urlsafe(16),
            code_verifier=code_verifier,
            code_challenge=code_challenge,
        )

    # ------------------------------------------------------------------
    # Phase two
    # ------------------------------------------------------------------

    def resume(self, correlation_id: str, redirect_url: Optional[str]) -> Optional[PluginCall]:
        """Continue the flow suspended under *correlation_id*.

        Args:
            correlation_id: The id from the :class:`PendingAuthorization`.
            redirect_url: The redirect delivered by the authorization step,
                or ``None`` when the user dismissed it.

        Returns:
            The call being completed (restored from the session store when
            this process did not start it), or ``None`` for an unknown id.
            The call settles asynchronously.
        """
        pending = self._pending.pop(correlation_id, None)
        record = self._store.pop_pending(correlation_id)

        if pending is not None:
            call, request = pending
        elif record is not None:
            call = PluginCall(record.method_name, record.options, callback_id=record.callback_id)
            request = record.request
            if self._auth_state is None:
                self._auth_state = self._store.load().auth_state
            logger.debug("Restored pending call %s from the session store", call.callback_id)
        else:
            logger.warning("No pending authorization for correlation id %s", correlation_id)
            return None

        if self._auth_state is None:
            self._auth_state = AuthorizationState(configuration=request.configuration)
        state = self._auth_state

        response, failure = parse_redirect(request, redirect_url)
        state.update_from_authorization(response, failure)
        self._store.save_state(state)

        if response is None:
            self._reject(call, self._failure_error(failure))
            return call

        self._dispose_service()
        service = self._new_service()
        self._service = service
        self._flow_state = FlowState.TOKEN_EXCHANGE
        try:
            self._executor.submit(self._complete_authorization, call, response, state, service)
        except RuntimeError as exc:
            self._reject(call, TokenExchangeError(f"Token exchange could not be scheduled: {exc}"))
        return call

    def _failure_error(self, failure: Optional[AuthorizationFailure]) -> BridgeError:
        if failure is None or not self._settings.distinguish_cancel:
            return AuthFailedError(NO_TOKEN_MESSAGE)
        if failure.is_user_cancel:
            return AuthCancelledError(LOGIN_CANCELED_MESSAGE)
        return AuthFailedError(f"Login failed: {failure.describe()}")

    def _complete_authorization(
        self,
        call: PluginCall,
        response: AuthorizationResponse,
        state: AuthorizationState,
        service: AuthorizationService,
    ) -> None:
        """Worker: exchange, refresh if needed, fetch the resource, settle."""
        try:
            if response.authorization_code:
                tokens = service.exchange_code(response)
            else:
                tokens = TokenSet.from_authorization_response(response)
            state.update_from_token_response(tokens)
            access_token, id_token = state.fresh_tokens(service)
            if state is self._auth_state:
                self._store.save_state(state)
            self._deliver(call, access_token, id_token)
        except BridgeError as exc:
            self._reject(call, exc)
        except Exception as exc:
            logger.exception("Unexpected failure while completing authorization")
            self._reject(call, TokenExchangeError(f"Token exchange failed: {exc}"))
        finally:
            service.dispose()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _submit_delivery(
        self, call: PluginCall, access_token: str, id_token: Optional[str]
    ) -> None:
        def deliver() -> None:
            try:
                self._deliver(call, access_token, id_token)
            except BridgeError as exc:
                self._reject(call, exc)
            except Exception as exc:
                logger.exception("Unexpected failure while delivering tokens")
                self._reject(call, AuthFailedError(f"Token delivery failed: {exc}"))

        try:
            self._executor.submit(deliver)
        except RuntimeError as exc:
            self._reject(call, AuthFailedError(f"Token delivery could not be scheduled: {exc}"))

    def _deliver(self, call: PluginCall, access_token: str, id_token: Optional[str]) -> None:
        """Fetch the optional resource and resolve *call*. Runs on a worker."""
        resource_body = None
        resource_url = get_call_param(call.data, PARAM_RESOURCE_URL)
        if resource_url:
            self._flow_state = FlowState.RESOURCE_FETCH
            resource_body = self._fetcher.fetch(resource_url, access_token)

        payload = build_token_payload(
            TokenResult(
                access_token=access_token,
                id_token=id_token,
                resource_response=resource_body,
            )
        )
        if call.resolve(payload):
            self._flow_state = FlowState.RESOLVED

    def _reject(self, call: PluginCall, error: BridgeError) -> None:
        logger.info("Rejecting call %s: %s", call.callback_id, error)
        if call.reject(str(error), error):
            self._flow_state = FlowState.REJECTED

    # ------------------------------------------------------------------
    # Custom handlers
    # ------------------------------------------------------------------

    def _handler_context(self) -> HandlerContext:
        return HandlerContext(settings=self._settings, launcher=self._launcher)

    def _handler_failure(self, call: PluginCall, error: HandlerResolutionError) -> None:
        logger.error("Custom handler problem: %s", error)
        if self._settings.handler_failure == HandlerFailurePolicy.REJECT:
            self._reject(call, error)
        else:
            logger.warning("Leaving call %s unresolved", call.callback_id)

    def _delegate_fetch(self, call: PluginCall, handler_name: str) -> None:
        try:
            handler = self._registry.resolve(handler_name)
        except HandlerResolutionError as exc:
            self._handler_failure(call, exc)
            return

        logger.debug("Delegating call %s to custom handler '%s'", call.callback_id, handler_name)
        try:
            handler.fetch_access_token(
                self._handler_context(), call, _HandlerTokenCallback(self, call)
            )
        except Exception as exc:
            logger.error("Custom handler '%s' raised: %s", handler_name, exc, exc_info=exc)
            self._reject(call, AuthFailedError(LOGIN_FAILED_MESSAGE))

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def logout(self, call: PluginCall) -> None:
        """End the session for *call*.

        With a custom handler configured the handler decides the outcome.
        Otherwise the service is disposed, in-memory state is discarded,
        suspended calls are rejected, the persisted namespace is erased, and
        *call* resolves with no payload.
        """
        handler_name = extract_handler_name(call.data, self._settings.platform)
        if handler_name:
            try:
                handler = self._registry.resolve(handler_name)
            except HandlerResolutionError as exc:
                self._handler_failure(call, exc)
                return
            try:
                successful = handler.logout(call)
            except Exception as exc:
                logger.error("Custom handler '%s' logout raised: %s", handler_name, exc, exc_info=exc)
                successful = False
            if successful:
                call.resolve()
            else:
                self._reject(call, AuthFailedError(LOGOUT_FAILED_MESSAGE))
            return

        self._dispose_service()
        self._auth_state = None
        for correlation_id in list(self._pending):
            orphan = self._pending.pop(correlation_id)
            self._reject(orphan.call, AuthCancelledError("Authorization discarded by logout"))
        self._store.erase()
        self._flow_state = FlowState.IDLE
        call.resolve()

    def on_stop(self) -> None:
        """Host suspension: dispose the service handle, keep state and pending calls."""
        self._dispose_service()

    def close(self) -> None:
        """Dispose the service and shut down the private executor, if any."""
        self._dispose_service()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_service(self) -> AuthorizationService:
        return AuthorizationService(self._settings, transport=self._transport)

    def _dispose_service(self) -> None:
        if self._service is not None:
            self._service.dispose()
            self._service = None

    def _forget_pending(self, correlation_id: str) -> None:
        self._pending.pop(correlation_id, None)
        self._store.pop_pending(correlation_id)
