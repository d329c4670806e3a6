"""The caller's in-flight request.

A :class:`PluginCall` is the Python counterpart of a bridge promise: the
calling layer creates one per invocation, hands it to the plugin, and later
either blocks on :meth:`PluginCall.wait` or registers listeners with
:meth:`PluginCall.add_done_callback`.

A call settles exactly once. Settling may happen on any thread (token
exchange and resource fetch complete on background workers); later attempts
are logged and ignored.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from typing import Any, Callable, Optional

from oauthbridge.exceptions import BridgeError
from oauthbridge.options import get_call_param

logger = logging.getLogger(__name__)


class CallStatus(str, enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class PluginCall:
    """A single invocation of a plugin method awaiting its outcome.

    Args:
        method_name: Name of the invoked plugin method (``"authenticate"``).
        data: The caller's option payload.
        callback_id: Stable identifier; generated when omitted. Restored
            calls reuse the identifier of the call they stand in for.

    Example::

        call = PluginCall("authenticate", {"appId": "abc", ...})
        plugin.authenticate(call)
        ...
        payload = call.result(timeout=30)
    """

    def __init__(
        self,
        method_name: str,
        data: Optional[dict[str, Any]] = None,
        callback_id: Optional[str] = None,
    ) -> None:
        self.method_name = method_name
        self.data: dict[str, Any] = data or {}
        self.callback_id = callback_id or uuid.uuid4().hex
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._status = CallStatus.PENDING
        self._payload: Optional[dict[str, Any]] = None
        self._message: Optional[str] = None
        self._error: Optional[BaseException] = None
        self._callbacks: list[Callable[[PluginCall], None]] = []

    def __repr__(self) -> str:
        return f"PluginCall({self.method_name!r}, id={self.callback_id}, {self._status.value})"

    @property
    def status(self) -> CallStatus:
        return self._status

    @property
    def is_pending(self) -> bool:
        return self._status == CallStatus.PENDING

    @property
    def payload(self) -> Optional[dict[str, Any]]:
        """The resolved payload (``None`` until resolved, or for empty resolves)."""
        return self._payload

    @property
    def message(self) -> Optional[str]:
        """The rejection message (``None`` unless rejected)."""
        return self._message

    @property
    def error(self) -> Optional[BaseException]:
        """The exception attached to the rejection, when one was given."""
        return self._error

    def get_string(self, key: str) -> Optional[str]:
        """Read a string option from :attr:`data` (dotted keys allowed)."""
        return get_call_param(self.data, key)

    # ------------------------------------------------------------------
    # Settling
    # ------------------------------------------------------------------

    def resolve(self, payload: Optional[dict[str, Any]] = None) -> bool:
        """Resolve the call.

        Returns:
            ``True`` if this call settled the call, ``False`` if it had
            already been settled.
        """
        return self._settle(CallStatus.RESOLVED, payload=payload)

    def reject(self, message: str, error: Optional[BaseException] = None) -> bool:
        """Reject the call with a human-readable *message*.

        Returns:
            ``True`` if this call settled the call, ``False`` if it had
            already been settled.
        """
        return self._settle(CallStatus.REJECTED, message=message, error=error)

    def _settle(
        self,
        status: CallStatus,
        payload: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        with self._lock:
            if self._status != CallStatus.PENDING:
                logger.warning(
                    "Ignoring %s of call %s: already %s",
                    status.value,
                    self.callback_id,
                    self._status.value,
                )
                return False
            self._status = status
            self._payload = payload
            self._message = message
            self._error = error
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        self._settled.set()

        for callback in callbacks:
            self._run_callback(callback)
        return True

    def _run_callback(self, callback: Callable[[PluginCall], None]) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception("Done callback of call %s raised", self.callback_id)

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def add_done_callback(self, callback: Callable[[PluginCall], None]) -> None:
        """Invoke *callback* with this call once settled (immediately if already settled)."""
        with self._lock:
            if self._status == CallStatus.PENDING:
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the call settles. Returns ``False`` on timeout."""
        return self._settled.wait(timeout)

    def result(self, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        """Wait for the call and return its payload.

        Raises:
            TimeoutError: If the call did not settle within *timeout*.
            BridgeError: If the call was rejected. The attached error is
                re-raised when it is a :class:`BridgeError`.
        """
        if not self.wait(timeout):
            raise TimeoutError(f"Call {self.callback_id} did not settle in time")
        if self._status == CallStatus.REJECTED:
            if isinstance(self._error, BridgeError):
                raise self._error
            raise BridgeError(self._message or "Call rejected")
        return self._payload
