"""Call option extraction with platform-specific overrides.

A call payload is a plain, loosely typed dict. Platform-specific values live
under a key named after the platform (``{"android": {"appId": "..."}}``) and
are addressed with dotted keys (``"android.appId"``). Lookups never raise:
absence is the caller's signal to apply a default or reject.

:func:`extract_auth_config` is the single place that turns a payload into a
validated :class:`~oauthbridge.models.AuthConfig`, checking required options
in a fixed order so that the first missing one is reported.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar

from oauthbridge.exceptions import ValidationError
from oauthbridge.models import AuthConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARAM_APP_ID = "appId"
PARAM_RESPONSE_TYPE = "responseType"
PARAM_ACCESS_TOKEN_ENDPOINT = "accessTokenEndpoint"
PARAM_AUTHORIZATION_BASE_URL = "authorizationBaseUrl"
PARAM_CUSTOM_HANDLER_CLASS = "customHandlerClass"
PARAM_CUSTOM_SCHEME = "customScheme"
PARAM_SCOPE = "scope"
PARAM_STATE = "state"
PARAM_RESOURCE_URL = "resourceUrl"


def platform_key(platform: str, key: str) -> str:
    """Return the dotted platform-specific form of *key* (``android.appId``)."""
    return f"{platform}.{key}"


def get_call_param(
    data: dict[str, Any],
    key: str,
    type_: type[T] = str,  # type: ignore[assignment]
    default: Optional[T] = None,
) -> Optional[T]:
    """Read a value from a call payload.

    A literal top-level key wins; otherwise a dotted key walks nested dicts.
    Values of the wrong type are treated as absent.

    Args:
        data: The call payload.
        key: Option key, optionally dotted (``"android.appId"``).
        type_: Expected Python type of the value.
        default: Returned when the key is missing or mistyped.

    Returns:
        The value, or *default*.
    """
    if key in data:
        value = data[key]
    else:
        value = data
        for segment in key.split("."):
            if not isinstance(value, dict) or segment not in value:
                return default
            value = value[segment]

    if value is None:
        return default
    if not isinstance(value, type_):
        logger.debug(
            "Ignoring option '%s': expected %s, got %s",
            key,
            type_.__name__,
            type(value).__name__,
        )
        return default
    return value


def get_overridden_param(
    data: dict[str, Any],
    key: str,
    platform: str,
    type_: type[T] = str,  # type: ignore[assignment]
) -> Optional[T]:
    """Read *key*, letting the platform-specific value win when it is non-empty."""
    override = get_call_param(data, platform_key(platform, key), type_)
    if override is not None and override != "":
        return override
    return get_call_param(data, key, type_)


def set_call_param(data: dict[str, Any], key: str, value: Any) -> None:
    """Write *value* at the dotted *key*, creating nested dicts as needed."""
    segments = key.split(".")
    target = data
    for segment in segments[:-1]:
        child = target.get(segment)
        if not isinstance(child, dict):
            child = {}
            target[segment] = child
        target = child
    target[segments[-1]] = value


def extract_handler_name(data: dict[str, Any], platform: str) -> Optional[str]:
    """Return the configured custom handler name, or ``None`` when unset or empty."""
    name = get_call_param(data, platform_key(platform, PARAM_CUSTOM_HANDLER_CLASS))
    return name or None


def extract_auth_config(data: dict[str, Any], platform: str) -> AuthConfig:
    """Validate a call payload and return its :class:`AuthConfig`.

    Required options are checked in order -- app id, authorization base URL,
    access token endpoint, custom scheme -- and the first missing one is
    reported.

    Args:
        data: The call payload.
        platform: Override prefix (e.g. ``"android"``).

    Returns:
        The frozen, override-resolved configuration.

    Raises:
        ValidationError: Naming the first missing required option.
    """
    app_id = get_overridden_param(data, PARAM_APP_ID, platform)
    if not app_id:
        raise ValidationError(
            f"Option '{PARAM_APP_ID}' or "
            f"'{platform_key(platform, PARAM_APP_ID)}' is required!"
        )

    base_url = get_call_param(data, PARAM_AUTHORIZATION_BASE_URL)
    if not base_url:
        raise ValidationError(f"Option '{PARAM_AUTHORIZATION_BASE_URL}' is required!")

    token_endpoint = get_call_param(data, PARAM_ACCESS_TOKEN_ENDPOINT)
    if not token_endpoint:
        raise ValidationError(f"Option '{PARAM_ACCESS_TOKEN_ENDPOINT}' is required!")

    scheme_key = platform_key(platform, PARAM_CUSTOM_SCHEME)
    custom_scheme = get_call_param(data, scheme_key)
    if not custom_scheme:
        raise ValidationError(f"Option '{scheme_key}' is required!")

    return AuthConfig(
        app_id=app_id,
        authorization_base_url=base_url,
        access_token_endpoint=token_endpoint,
        custom_scheme=custom_scheme,
        response_type=get_overridden_param(data, PARAM_RESPONSE_TYPE, platform) or None,
        scope=get_call_param(data, PARAM_SCOPE),
        state=get_call_param(data, PARAM_STATE),
        resource_url=get_call_param(data, PARAM_RESOURCE_URL) or None,
        custom_handler_class=extract_handler_name(data, platform),
    )
