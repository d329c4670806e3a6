"""Persistent session namespace.

Stores the authorization state and the calls suspended at the authorization
UI boundary in ``~/.local/share/oauthbridge/sessions/<namespace>.json``
(XDG) or the platform-equivalent directory. Files are written atomically with
``0o600`` permissions since they may hold tokens and PKCE verifiers.
Read-modify-write cycles on one file are serialised within a process.

The namespace defaults to the plugin log tag; ``logout`` erases it.

See Also:
    :class:`~oauthbridge.flow.AuthorizationFlowController` -- the only writer.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from oauthbridge.auth.state import AuthorizationState
from oauthbridge.config import atomic_write, get_data_dir
from oauthbridge.models import PendingCallRecord

logger = logging.getLogger(__name__)

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    """Return the lock serialising read-modify-write cycles on *path*."""
    with _locks_guard:
        return _locks.setdefault(path, threading.Lock())


class SessionSnapshot(BaseModel):
    """Everything the session store keeps for one namespace."""

    auth_state: Optional[AuthorizationState] = None
    pending: dict[str, PendingCallRecord] = Field(default_factory=dict)


def _sessions_dir() -> Path:
    """Return the sessions directory, creating it if needed."""
    path = get_data_dir() / "sessions"
    path.mkdir(parents=True, exist_ok=True)
    return path


class SessionStore:
    """Read/write the persisted session of one namespace.

    Args:
        namespace: Namespace identifier used to derive the file name.

    Example::

        store = SessionStore("OAuth2Client")
        store.put_pending(record)
        record = store.pop_pending(record.request.correlation_id)
        store.erase()
    """

    def __init__(self, namespace: str) -> None:
        self._namespace = namespace
        self._path = _sessions_dir() / f"{namespace}.json"
        self._lock = _lock_for(self._path)

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def path(self) -> Path:
        """The filesystem path to this namespace's session file."""
        return self._path

    def load(self) -> SessionSnapshot:
        """Load the snapshot from disk.

        Returns:
            The stored :class:`SessionSnapshot`, or an empty one when the
            file does not exist or cannot be parsed.
        """
        if not self._path.is_file():
            return SessionSnapshot()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return SessionSnapshot.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self._path, exc)
            return SessionSnapshot()

    def save(self, snapshot: SessionSnapshot) -> None:
        """Persist *snapshot* atomically with ``0o600`` permissions."""
        text = json.dumps(snapshot.model_dump(mode="json"), indent=2) + "\n"
        atomic_write(self._path, text, mode=0o600)

    def save_state(self, state: Optional[AuthorizationState]) -> None:
        """Replace the stored authorization state, keeping pending calls."""
        with self._lock:
            snapshot = self.load()
            snapshot.auth_state = state
            self.save(snapshot)

    def put_pending(self, record: PendingCallRecord) -> None:
        """Store *record* under its correlation id."""
        with self._lock:
            snapshot = self.load()
            snapshot.pending[record.request.correlation_id] = record
            self.save(snapshot)

    def pop_pending(self, correlation_id: str) -> Optional[PendingCallRecord]:
        """Remove and return the pending call for *correlation_id*, if any."""
        with self._lock:
            snapshot = self.load()
            record = snapshot.pending.pop(correlation_id, None)
            if record is not None:
                self.save(snapshot)
        return record

    def erase(self) -> None:
        """Delete the namespace file. A no-op when it does not exist."""
        with self._lock:
            if not self._path.is_file():
                return
            self._path.unlink()
        logger.debug("Erased session namespace '%s'", self._namespace)
