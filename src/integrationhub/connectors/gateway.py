"""Async HTTP client for the external integration gateway.

Wraps httpx with the gateway's URL scheme and auth header:
- POST {base}/connector/interactor/{connector}/action/{action}/execute?account=
- GET  {base}/connector/interactor/{connector}/auth-url?account=
- POST {base}/connector/interactor/{connector}/disconnect?account=

The client holds configuration only. Retries are the caller's business
(see RetryExecutor); this layer only classifies failures so the executor
can tell transient ones from client errors.
"""

import json as json_module
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .base import (
    DISPATCH_POLICY,
    GatewayAuth,
    GatewayConnectionError,
    GatewayError,
    GatewayTimeoutError,
    RequestPolicy,
    map_http_error,
)

logger = logging.getLogger(__name__)


def normalize_account(account: str) -> str:
    """Canonical form of an account identifier on the wire."""
    return (account or "").strip().lower()


@dataclass
class GatewayResponse:
    """Simplified gateway response.

    ``data`` holds the parsed JSON body, the raw text when the body is not
    JSON, or None for an empty body.
    """

    status_code: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        """Check if status code indicates success (2xx)."""
        return 200 <= self.status_code < 300

    def raise_for_status(self, connector_name: str = "") -> "GatewayResponse":
        """Raise the mapped GatewayError for a non-2xx response."""
        if not self.ok:
            raise map_http_error(self.status_code, self.data, connector_name, self.headers)
        return self


def _decode_body(content: bytes) -> Any:
    if not content:
        return None
    try:
        return json_module.loads(content)
    except (ValueError, UnicodeDecodeError):
        return content.decode("utf-8", errors="replace")


class GatewayClient:
    """Authenticated async client for the integration gateway."""

    def __init__(
        self,
        base_url: str,
        auth: Optional[GatewayAuth] = None,
        policy: Optional[RequestPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway client.

        Args:
            base_url: Gateway base URL (trailing slash is stripped)
            auth: Shared API key credential
            policy: Default request policy (timeout) for calls
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.auth = auth or GatewayAuth()
        self.policy = policy or DISPATCH_POLICY
        self._transport = transport

        if not self.auth.is_configured():
            logger.warning("Gateway API key is not configured; upstream calls will be rejected")

    @property
    def is_configured(self) -> bool:
        """Whether a shared API key is available."""
        return self.auth.is_configured()

    def _build_headers(self, policy: RequestPolicy) -> Dict[str, str]:
        headers = {"User-Agent": policy.user_agent}
        headers.update(policy.default_headers)
        headers.update(self.auth.get_headers())
        return headers

    def _connector_url(self, connector_name: str, suffix: str) -> str:
        return f"{self.base_url}/connector/interactor/{quote(connector_name, safe='-_.')}/{suffix}"

    async def _request(
        self,
        method: str,
        url: str,
        connector_name: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        policy: Optional[RequestPolicy] = None,
    ) -> GatewayResponse:
        """Make one HTTP request (no retries).

        Raises:
            GatewayTimeoutError: On timeout
            GatewayConnectionError: On connection/transport failure
            ServiceUnavailableError: On a 5xx response
        """
        policy = policy or self.policy
        start_time = time.monotonic()

        try:
            async with httpx.AsyncClient(
                timeout=policy.timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._build_headers(policy),
                )
        except httpx.TimeoutException:
            raise GatewayTimeoutError(
                f"Request timed out after {policy.timeout}s",
                connector_name=connector_name,
                timeout_seconds=policy.timeout,
            )
        except httpx.TransportError as e:
            raise GatewayConnectionError(
                f"Failed to reach gateway for {connector_name}: {e}",
                connector_name=connector_name,
            )

        result = GatewayResponse(
            status_code=response.status_code,
            data=_decode_body(response.content),
            headers=dict(response.headers),
            elapsed_seconds=time.monotonic() - start_time,
        )
        logger.debug(
            f"{method} {connector_name} -> HTTP {result.status_code} "
            f"in {result.elapsed_seconds:.2f}s"
        )

        if result.status_code >= 500:
            raise map_http_error(result.status_code, result.data, connector_name, result.headers)
        return result

    async def execute(
        self,
        connector_name: str,
        action: str,
        params: Optional[Dict[str, Any]],
        account: str,
        policy: Optional[RequestPolicy] = None,
    ) -> GatewayResponse:
        """Execute a backend action through the gateway.

        Args:
            connector_name: Gateway connector (e.g. "gmail-v1")
            action: Concrete backend action (e.g. "gmail.users.messages.list")
            params: JSON body sent to the action
            account: Account the connector acts for
            policy: Per-call policy override (timeout)

        Returns:
            GatewayResponse for any status below 500
        """
        url = self._connector_url(connector_name, f"action/{quote(action, safe='-_.')}/execute")
        return await self._request(
            "POST",
            url,
            connector_name,
            params={"account": normalize_account(account)},
            json=params or {},
            policy=policy,
        )

    async def auth_url(
        self,
        connector_name: str,
        account: str,
        policy: Optional[RequestPolicy] = None,
    ) -> GatewayResponse:
        """Ask the gateway for the OAuth authorization URL of a connector."""
        url = self._connector_url(connector_name, "auth-url")
        return await self._request(
            "GET",
            url,
            connector_name,
            params={"account": normalize_account(account)},
            policy=policy,
        )

    async def disconnect(
        self,
        connector_name: str,
        account: str,
        policy: Optional[RequestPolicy] = None,
    ) -> GatewayResponse:
        """Ask the gateway to revoke a connector's stored credential."""
        url = self._connector_url(connector_name, "disconnect")
        return await self._request(
            "POST",
            url,
            connector_name,
            params={"account": normalize_account(account)},
            json={},
            policy=policy,
        )


__all__ = [
    "GatewayClient",
    "GatewayError",
    "GatewayResponse",
    "normalize_account",
]
