"""Gateway connector layer.

Key components:
- GatewayAuth / RequestPolicy: credential and timeout settings
- GatewayError hierarchy: typed failures with a ``retryable`` flag
- RetryExecutor: bounded exponential backoff shared by probes and dispatch
- GatewayClient: httpx-based async client for the integration gateway
- StubGateway: network-free stand-in for tests and offline runs
"""

from .base import (
    DISPATCH_POLICY,
    PROBE_POLICY,
    ClientRequestError,
    GatewayAuth,
    GatewayConnectionError,
    GatewayError,
    GatewayTimeoutError,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    RevokeBestEffortError,
    ServiceUnavailableError,
    UpstreamAuthError,
    map_http_error,
)
from .dummy import AUTH_URL, DISCONNECT, StubCall, StubGateway
from .gateway import GatewayClient, GatewayResponse, normalize_account
from .retry import RetryExecutor, is_retryable

__all__ = [
    # Auth and policy
    "GatewayAuth",
    "RequestPolicy",
    "PROBE_POLICY",
    "DISPATCH_POLICY",
    # Errors
    "GatewayError",
    "GatewayConnectionError",
    "GatewayTimeoutError",
    "ServiceUnavailableError",
    "UpstreamAuthError",
    "ResourceNotFoundError",
    "RateLimitError",
    "ClientRequestError",
    "RevokeBestEffortError",
    "map_http_error",
    # Clients
    "GatewayClient",
    "GatewayResponse",
    "normalize_account",
    "StubGateway",
    "StubCall",
    "AUTH_URL",
    "DISCONNECT",
    # Retry
    "RetryExecutor",
    "is_retryable",
]
