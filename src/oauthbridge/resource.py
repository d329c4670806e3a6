"""Protected resource fetch and token payload assembly.

After an access token is obtained, the flow optionally performs one
authenticated GET against the caller's ``resourceUrl`` and delivers the body
together with the token. There is exactly one attempt: any network error or
non-2xx status fails the call.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from oauthbridge.exceptions import ResourceFetchError
from oauthbridge.models import BridgeSettings, TokenResult

logger = logging.getLogger(__name__)


class ResourceFetcher:
    """Perform the single bearer-authenticated resource request.

    Must only be called from a background worker; it blocks for the duration
    of the request.
    """

    def __init__(self, settings: BridgeSettings) -> None:
        self._timeout = settings.resource_timeout
        self._verify = settings.verify_ssl

    def fetch(self, url: str, access_token: str) -> str:
        """GET *url* with ``Authorization: Bearer <access_token>`` and return the body.

        Raises:
            ResourceFetchError: On network errors or a non-2xx status.
        """
        logger.debug("Fetching resource %s", url)
        try:
            response = httpx.get(
                url,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
                verify=self._verify,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ResourceFetchError(
                f"Resource request failed with status {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ResourceFetchError(f"Resource request failed: {exc}") from exc
        return response.text


def build_token_payload(result: TokenResult) -> dict[str, Any]:
    """Render *result* as the payload a call resolves with.

    A JSON-object resource body is merged into the payload; any other body is
    delivered verbatim under ``resourceResponse``. ``accessToken`` and
    ``idToken`` always reflect the tokens of this flow.
    """
    payload: dict[str, Any] = {}
    if result.resource_response is not None:
        body: Optional[Any] = result.resource_response
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                pass
        if isinstance(body, dict):
            payload.update(body)
        else:
            payload["resourceResponse"] = result.resource_response

    payload["accessToken"] = result.access_token
    if result.id_token:
        payload["idToken"] = result.id_token
    return payload
