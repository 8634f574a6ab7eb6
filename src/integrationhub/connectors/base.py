"""Core gateway abstractions: auth, request policy, error hierarchy.

Every upstream call goes through one external integration gateway. This
module defines what those calls share:
- GatewayAuth: the shared API key sent on every request
- RequestPolicy: per-attempt timeout and default headers
- GatewayError hierarchy: typed exceptions with a ``retryable`` flag
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# =============================================================================
# Authentication
# =============================================================================


@dataclass
class GatewayAuth:
    """Shared secret credential for the gateway.

    Sent as ``x-api-key: <secret>`` on every request.
    """

    api_key: str = ""
    header_name: str = "x-api-key"

    def is_configured(self) -> bool:
        """Check if the API key is set."""
        return bool(self.api_key)

    def get_headers(self) -> Dict[str, str]:
        """Get the auth header (empty when no key is configured)."""
        if not self.api_key:
            return {}
        return {self.header_name: self.api_key}


# =============================================================================
# Request Policy
# =============================================================================


@dataclass
class RequestPolicy:
    """Policy for gateway requests: per-attempt timeout and headers.

    Attempt caps and backoff belong to the RetryExecutor wrapping the call.
    """

    timeout: float = 8.0  # seconds, per attempt

    user_agent: str = "integrationhub/0.1"
    default_headers: Dict[str, str] = field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )


# Probes are cheap and read-only, so they get a short timeout
PROBE_POLICY = RequestPolicy(timeout=8.0)

DISPATCH_POLICY = RequestPolicy(timeout=30.0)


# =============================================================================
# Gateway Error Hierarchy
# =============================================================================


class GatewayError(Exception):
    """Base exception for gateway errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        connector_name: str = "",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.connector_name = connector_name
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class GatewayConnectionError(GatewayError):
    """Failed to connect to the gateway."""

    retryable = True


class GatewayTimeoutError(GatewayError):
    """Request timed out."""

    retryable = True

    def __init__(
        self,
        message: str = "Request timed out",
        connector_name: str = "",
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(message, connector_name, details={"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class ServiceUnavailableError(GatewayError):
    """Gateway or upstream returned a 5xx."""

    retryable = True


class UpstreamAuthError(GatewayError):
    """Stored credential is invalid, expired or not permitted (401/403)."""

    pass


class ResourceNotFoundError(GatewayError):
    """Gateway returned 404 (unknown connector, action or account)."""

    pass


class RateLimitError(GatewayError):
    """Rate limit exceeded (429).

    Not retried: the executor treats every 4xx as a client error.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        connector_name: str = "",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, connector_name, 429, {"retry_after": retry_after})
        self.retry_after = retry_after


class ClientRequestError(GatewayError):
    """Any other 4xx response."""

    pass


class RevokeBestEffortError(GatewayError):
    """Upstream revoke failed during disconnect. Logged, never raised to callers."""

    pass


def map_http_error(
    status_code: int,
    body: Any = None,
    connector_name: str = "",
    headers: Optional[Dict[str, str]] = None,
) -> GatewayError:
    """Map an HTTP status code to the matching GatewayError.

    Args:
        status_code: HTTP status code of a non-2xx response
        body: Parsed or raw response body (used for the message only)
        connector_name: Connector the call targeted
        headers: Response headers (for Retry-After)

    Returns:
        A GatewayError subclass instance (not raised)
    """
    body_str = body if isinstance(body, str) else repr(body)
    if len(body_str) > 300:
        body_str = body_str[:300] + "..."

    if status_code in (401, 403):
        return UpstreamAuthError(
            f"Gateway rejected credentials ({status_code}): {body_str}",
            connector_name=connector_name,
            status_code=status_code,
        )
    if status_code == 404:
        return ResourceNotFoundError(
            f"Resource not found: {body_str}",
            connector_name=connector_name,
            status_code=status_code,
        )
    if status_code == 429:
        retry_after = (headers or {}).get("retry-after") or (headers or {}).get("Retry-After")
        try:
            retry_seconds = float(retry_after) if retry_after else None
        except ValueError:
            retry_seconds = None
        return RateLimitError(
            f"Rate limit exceeded: {body_str}",
            connector_name=connector_name,
            retry_after=retry_seconds,
        )
    if status_code >= 500:
        return ServiceUnavailableError(
            f"Service error ({status_code}): {body_str}",
            connector_name=connector_name,
            status_code=status_code,
        )
    if status_code >= 400:
        return ClientRequestError(
            f"HTTP error {status_code}: {body_str}",
            connector_name=connector_name,
            status_code=status_code,
        )
    return GatewayError(
        f"Unexpected HTTP status {status_code}",
        connector_name=connector_name,
        status_code=status_code,
    )
