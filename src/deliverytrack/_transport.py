"""HTTP transport for the REST location store."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from deliverytrack._constants import USER_AGENT
from deliverytrack._redact import redact_for_log
from deliverytrack.config import TrackingConfig
from deliverytrack.exceptions import StoreTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the store API module.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`RestTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        ...


class RestTransport:
    """HTTP transport that adds store auth headers and decodes JSON replies."""

    def __init__(
        self,
        config: TrackingConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _build_headers(self, prefer: str | None) -> dict[str, str]:
        bearer = self._config.access_token or self._config.api_key
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=utf-8",
            "user-agent": USER_AGENT,
            "apikey": self._config.api_key,
            "authorization": f"Bearer {bearer}",
        }
        if prefer:
            headers["prefer"] = prefer
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns ``None`` for empty bodies (e.g. ``204 No Content`` or
        ``Prefer: return=minimal``).
        """
        url = f"{self._config.rest_url.rstrip('/')}{path}"
        headers = self._build_headers(prefer)
        body = json.dumps(json_body, separators=(",", ":")) if json_body is not None else None

        _logger.debug("%s %s params=%s", method, url, dict(params or {}))
        if self._config.api_trace_enabled:
            _logger.debug("request headers=%s body=%s", redact_for_log(headers), redact_for_log(json_body))

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params or {}),
                data=body,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise StoreTransportError(
                        f"HTTP {resp.status} from {method} {path}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except StoreTransportError:
            raise
        except TimeoutError as exc:
            raise StoreTransportError(f"Request to {path} timed out", endpoint=path) from exc
        except aiohttp.ClientError as exc:
            raise StoreTransportError(
                f"Request to {path} failed: {exc}",
                endpoint=path,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("response status=%s body=%s", resp.status, redact_for_log(text))

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=resp.status,
                endpoint=path,
            ) from exc
