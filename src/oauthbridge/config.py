"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for oauthbridge:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.oauthbridge/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings** -- A single :class:`~oauthbridge.models.BridgeSettings` JSON
  file storing defaults (platform prefix, flow policies, timeouts).
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  ``OAUTHBRIDGE_*`` environment variables, and the settings file.
* **Call options** -- :func:`load_call_options` reads a JSON options file and
  applies ``KEY=VALUE`` overrides in dotted-key form.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from oauthbridge.exceptions import ConfigError
from oauthbridge.models import BridgeSettings
from oauthbridge.options import set_call_param

_APP_NAME = "oauthbridge"
_CONFIG_FILENAME = "config.json"

_ENV_OVERRIDES: dict[str, str] = {
    "OAUTHBRIDGE_PLATFORM": "platform",
    "OAUTHBRIDGE_NAMESPACE": "session_namespace",
    "OAUTHBRIDGE_CODE_FLOW": "code_flow",
    "OAUTHBRIDGE_HANDLER_FAILURE": "handler_failure",
    "OAUTHBRIDGE_DISTINGUISH_CANCEL": "distinguish_cancel",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/oauthbridge/`` (default ``~/.config/oauthbridge/``).
    On macOS/Windows: ``~/.oauthbridge/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (sessions, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/oauthbridge/`` (default ``~/.local/share/oauthbridge/``).
    On macOS/Windows: ``~/.oauthbridge/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is given
    it is applied to the temp file before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> BridgeSettings:
    """Load settings from the config directory.

    Returns:
        The deserialised :class:`~oauthbridge.models.BridgeSettings`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = settings_path()
    if not path.is_file():
        return BridgeSettings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return BridgeSettings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: BridgeSettings) -> None:
    """Persist settings atomically to disk."""
    data = settings.model_dump(mode="json")
    atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


def resolve_settings(cli_overrides: Optional[dict[str, Any]] = None) -> BridgeSettings:
    """Resolve settings with full precedence chain.

    Precedence (high to low):
        1. CLI flags (*cli_overrides*, ``None`` values ignored)
        2. Environment variables (``OAUTHBRIDGE_PLATFORM``, ...)
        3. Settings file (``~/.config/oauthbridge/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the merged values fail validation.
    """
    data = load_settings().model_dump(mode="json")

    for env_var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[field] = value

    for field, value in (cli_overrides or {}).items():
        if value is not None:
            data[field] = value

    try:
        return BridgeSettings.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


# --- Call options ---


def parse_option_assignment(assignment: str) -> tuple[str, str]:
    """Split a ``KEY=VALUE`` option assignment.

    Raises:
        ConfigError: If there is no ``=`` or the key is empty.
    """
    key, sep, value = assignment.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ConfigError(f"Invalid option '{assignment}': expected KEY=VALUE")
    return key, value


def load_call_options(
    options_file: Optional[Path] = None,
    assignments: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Build a call payload from a JSON file and ``KEY=VALUE`` overrides.

    Dotted keys (``android.appId``) are written into nested dicts so the
    result looks like what a bridge caller would send.

    Raises:
        ConfigError: If the file is missing, is not a JSON object, or an
            assignment is malformed.
    """
    data: dict[str, Any] = {}
    if options_file is not None:
        if not options_file.is_file():
            raise ConfigError(f"Options file not found: {options_file}")
        try:
            loaded = json.loads(options_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Invalid options file {options_file}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Options file {options_file} must contain a JSON object")
        data = loaded

    for assignment in assignments or []:
        key, value = parse_option_assignment(assignment)
        set_call_param(data, key, value)
    return data
