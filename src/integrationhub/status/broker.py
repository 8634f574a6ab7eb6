"""Connection status broker.

Answers "is user U connected to integration I?" and keeps the answer in a
TTL cache so every command does not turn into an upstream probe.

State (owned by one StatusBroker instance, injected where needed):
- status cache: (integration, user) -> CachedStatus. Connected outcomes
  live for the full TTL, disconnected ones for a quarter of it so a fresh
  revocation gets re-checked sooner than a healthy connection.
- disconnect overrides: (integration, user) -> DisconnectOverride. Set by
  ``disconnect()``; while live it forces connected=False without probing.

Entries expire lazily on read; there is no background sweep. Two
concurrent misses for the same key may both probe; the last write wins.
A lock guards both maps, and it is never held across an await.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from integrationhub.connectors.base import (
    PROBE_POLICY,
    GatewayError,
    RequestPolicy,
    RevokeBestEffortError,
)
from integrationhub.connectors.gateway import GatewayResponse
from integrationhub.connectors.retry import RetryExecutor
from integrationhub.integrations.probes import ProbeOutcome, ProbeStrategy, probe_for
from integrationhub.integrations.registry import ConnectionRegistry, IntegrationDescriptor
from integrationhub.status.models import (
    AuthUrlResult,
    CachedStatus,
    DisconnectOverride,
    DisconnectResult,
    StatusResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 60.0
DEFAULT_OVERRIDE_TTL = 3600.0

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

Key = Tuple[str, str]


def is_plausible_account(identity: Any) -> bool:
    """Syntactic check that ``identity`` looks like an email account."""
    return isinstance(identity, str) and bool(_EMAIL_RE.match(identity.strip()))


def _key(integration_id: str, user_identity: str) -> Key:
    return (integration_id.strip().lower(), user_identity.strip().lower())


def extract_auth_url(data: Any) -> Optional[str]:
    """Pull the authorization URL out of ``{url}``, ``{output:{url}}`` or a bare string."""
    if isinstance(data, str):
        return data.strip() or None
    if not isinstance(data, dict):
        return None
    output = data.get("output")
    if isinstance(output, dict) and isinstance(output.get("url"), str):
        return output["url"]
    if isinstance(data.get("url"), str):
        return data["url"]
    return None


class StatusBroker:
    """Resolves and caches connection status per (integration, user).

    Usage:
        broker = StatusBroker(registry, gateway, RetryExecutor())
        status = await broker.get_status("gmail", "user@example.com")
        if status.connected:
            ...
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        gateway: Any,
        retry: Optional[RetryExecutor] = None,
        *,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        override_ttl: float = DEFAULT_OVERRIDE_TTL,
        clock: Callable[[], float] = time.monotonic,
        probe_policy: RequestPolicy = PROBE_POLICY,
        probes: Optional[Mapping[str, ProbeStrategy]] = None,
    ):
        """Initialize the broker.

        Args:
            registry: Integration catalog
            gateway: GatewayClient (or StubGateway)
            retry: Retry executor shared with the command router
            cache_ttl: Seconds a connected outcome stays cached
            override_ttl: Seconds a manual disconnect stays in force
            clock: Monotonic time source in seconds (injectable for tests)
            probe_policy: Request policy used for probe calls
            probes: Optional id -> strategy table replacing the built-ins
        """
        self.registry = registry
        self.gateway = gateway
        self.retry = retry or RetryExecutor()
        self.cache_ttl = cache_ttl
        self.override_ttl = override_ttl
        self.probe_policy = probe_policy
        self._clock = clock
        self._probes = dict(probes) if probes is not None else None

        self._lock = threading.Lock()
        self._cache: Dict[Key, CachedStatus] = {}
        self._overrides: Dict[Key, DisconnectOverride] = {}

    @property
    def failure_ttl(self) -> float:
        """TTL for disconnected outcomes: a quarter of the connected TTL."""
        return self.cache_ttl / 4

    # -------------------------------------------------------------------------
    # Cache primitives
    # -------------------------------------------------------------------------

    def _live_override(self, key: Key, now: float) -> Optional[DisconnectOverride]:
        with self._lock:
            override = self._overrides.get(key)
            if override is None:
                return None
            if override.is_live(now):
                return override
            del self._overrides[key]
        logger.debug(f"Disconnect override expired for {key[0]}:{key[1]}")
        return None

    def _live_cached(self, key: Key, now: float) -> Optional[CachedStatus]:
        with self._lock:
            cached = self._cache.get(key)
            if cached is None:
                return None
            if cached.is_live(now):
                return cached
            del self._cache[key]
            return None

    def _store(self, key: Key, connected: bool, account: Optional[str]) -> None:
        ttl = self.cache_ttl if connected else self.failure_ttl
        entry = CachedStatus(connected=connected, account=account, captured_at=self._clock(), ttl=ttl)
        with self._lock:
            self._cache[key] = entry

    def peek_cached(self, integration_id: str, user_identity: str) -> Optional[CachedStatus]:
        """Current live cache entry for a pair, without probing."""
        return self._live_cached(_key(integration_id, user_identity), self._clock())

    def has_override(self, integration_id: str, user_identity: str) -> bool:
        """Whether a live disconnect override exists for a pair."""
        return self._live_override(_key(integration_id, user_identity), self._clock()) is not None

    def invalidate(
        self, integration_id: Optional[str] = None, user_identity: Optional[str] = None
    ) -> None:
        """Drop cached status (not overrides) for one pair, or everything."""
        with self._lock:
            if integration_id is None or user_identity is None:
                self._cache.clear()
            else:
                self._cache.pop(_key(integration_id, user_identity), None)

    def mark_disconnected(self, integration_id: str, user_identity: str) -> None:
        """Cache a pair as disconnected after upstream rejected its credentials.

        The entry lives for ``failure_ttl`` like any other disconnected probe.
        """
        key = _key(integration_id, user_identity)
        self._store(key, False, None)
        logger.info(f"Marked {key[0]}:{key[1]} disconnected after an upstream auth failure")

    def clear_override(self, integration_id: str, user_identity: str) -> bool:
        """Remove a disconnect override (e.g. after a successful re-authorization).

        Returns:
            True if an override was removed
        """
        key = _key(integration_id, user_identity)
        with self._lock:
            removed = self._overrides.pop(key, None) is not None
            self._cache.pop(key, None)
        if removed:
            logger.info(f"Cleared disconnect override for {key[0]}:{key[1]}")
        return removed

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _strategy(self, descriptor: IntegrationDescriptor) -> Optional[ProbeStrategy]:
        if self._probes is not None:
            return self._probes.get(descriptor.id)
        return probe_for(descriptor)

    async def _probe(
        self, descriptor: IntegrationDescriptor, strategy: ProbeStrategy, account: str
    ) -> ProbeOutcome:
        request = strategy.build_probe_request(account)

        async def attempt() -> GatewayResponse:
            return await self.gateway.execute(
                descriptor.backend_connector_name,
                request.action,
                request.params,
                account,
                policy=self.probe_policy,
            )

        response = await self.retry.run(attempt, label=f"probe {descriptor.id}")
        return strategy.is_connected_from_response(response, account)

    async def get_status(self, integration_id: str, user_identity: str) -> StatusResult:
        """Resolve connection status for (integration, user). Never raises.

        Args:
            integration_id: Registered integration id
            user_identity: The caller's account (email)

        Returns:
            StatusResult; upstream failures resolve to connected=False
        """
        descriptor = self.registry.get(integration_id)
        if descriptor is None:
            return StatusResult(ok=False, connected=False, error="Integration not found")

        if not is_plausible_account(user_identity):
            return StatusResult(ok=False, connected=False, error="Valid user email is required")

        key = _key(descriptor.id, user_identity)
        now = self._clock()

        if self._live_override(key, now) is not None:
            logger.debug(f"{descriptor.id}: manual disconnect in force for {key[1]}")
            return StatusResult(ok=True, connected=False)

        cached = self._live_cached(key, now)
        if cached is not None:
            logger.debug(f"{descriptor.id}: using cached status connected={cached.connected}")
            return cached.to_result()

        if not getattr(self.gateway, "is_configured", True):
            logger.warning(f"No gateway API key configured; {descriptor.id} reported disconnected")
            return StatusResult(ok=True, connected=False)

        strategy = self._strategy(descriptor)
        if strategy is None:
            logger.debug(f"{descriptor.id}: no probe strategy, reporting disconnected")
            return StatusResult(ok=True, connected=False)

        account = user_identity.strip().lower()
        try:
            outcome = await self._probe(descriptor, strategy, account)
        except GatewayError as e:
            logger.warning(f"{descriptor.id} status probe failed: {type(e).__name__}: {e}")
            outcome = ProbeOutcome(False, reason=type(e).__name__)
        except Exception as e:
            logger.exception(f"{descriptor.id} status probe raised unexpectedly: {e}")
            outcome = ProbeOutcome(False, reason="unexpected error")

        self._store(key, outcome.connected, outcome.account if outcome.connected else None)
        logger.info(
            f"{descriptor.id} status for {key[1]}: connected={outcome.connected} ({outcome.reason})"
        )
        if outcome.connected:
            return StatusResult(ok=True, connected=True, account=outcome.account or account)
        return StatusResult(ok=True, connected=False)

    async def refresh_status(self, integration_id: str, user_identity: str) -> StatusResult:
        """Drop the cached entry for a pair and resolve again.

        A live disconnect override still applies.
        """
        if isinstance(integration_id, str) and isinstance(user_identity, str):
            self.invalidate(integration_id, user_identity)
        return await self.get_status(integration_id, user_identity)

    async def get_all_statuses(self, user_identity: str) -> List[Dict[str, Any]]:
        """Status of every registered integration for one user, concurrently."""
        descriptors = self.registry.list()
        results = await asyncio.gather(
            *(self.get_status(d.id, user_identity) for d in descriptors)
        )
        return [
            {"id": d.id, "connected": r.connected} for d, r in zip(descriptors, results)
        ]

    def list_integrations(self) -> List[Dict[str, str]]:
        """Catalog for the route layer."""
        return [d.to_dict() for d in self.registry.list()]

    # -------------------------------------------------------------------------
    # Connect / disconnect
    # -------------------------------------------------------------------------

    async def get_auth_url(self, integration_id: str, user_identity: str) -> AuthUrlResult:
        """Resolve the OAuth authorization URL for a pair.

        A successful lookup starts a re-authorization, so any disconnect
        override and cached status for the pair are cleared; the next
        ``get_status`` probes again.
        """
        descriptor = self.registry.get(integration_id)
        if descriptor is None:
            return AuthUrlResult(ok=False, error="Integration not found")
        if not is_plausible_account(user_identity):
            return AuthUrlResult(ok=False, error="Valid user email is required")
        if not getattr(self.gateway, "is_configured", True):
            return AuthUrlResult(ok=False, error="Gateway API key not configured")

        connector = descriptor.backend_connector_name

        async def attempt() -> GatewayResponse:
            response = await self.gateway.auth_url(connector, user_identity)
            return response.raise_for_status(connector)

        try:
            response = await self.retry.run(attempt, label=f"auth-url {descriptor.id}")
        except GatewayError as e:
            logger.warning(f"Auth URL lookup failed for {descriptor.id}: {e}")
            return AuthUrlResult(ok=False, error="Failed to get auth URL from gateway")

        url = extract_auth_url(response.data)
        if not url:
            logger.warning(f"Auth URL missing from gateway response for {descriptor.id}")
            return AuthUrlResult(ok=False, error="Failed to resolve auth URL from gateway response")

        self.clear_override(descriptor.id, user_identity)
        return AuthUrlResult(ok=True, auth_url=url)

    async def _revoke(self, descriptor: IntegrationDescriptor, account: str) -> None:
        """Best-effort upstream revoke. Failures are logged, never raised."""
        connector = descriptor.backend_connector_name
        if not getattr(self.gateway, "is_configured", True):
            logger.info(f"Skipping upstream revoke for {descriptor.id}: no API key")
            return
        try:
            response = await self.gateway.disconnect(connector, account)
            if response.status_code == 404:
                logger.info(f"Upstream revoke for {descriptor.id} was a no-op (404)")
                return
            response.raise_for_status(connector)
            data = response.data
            if isinstance(data, dict) and (data.get("ok") is False or data.get("success") is False):
                raise RevokeBestEffortError(
                    str(data.get("error") or "gateway reported revoke failure"),
                    connector_name=connector,
                    status_code=response.status_code,
                )
        except GatewayError as e:
            error = e if isinstance(e, RevokeBestEffortError) else RevokeBestEffortError(
                str(e), connector_name=connector, status_code=e.status_code
            )
            logger.warning(f"Upstream revoke failed for {descriptor.id}: {error}")

    async def disconnect(self, integration_id: str, user_identity: str) -> DisconnectResult:
        """Disconnect a pair.

        Issues a best-effort revoke, drops the cached status, and installs a
        disconnect override so the pair reads as disconnected right away even
        if the upstream revoke silently did nothing.
        """
        descriptor = self.registry.get(integration_id)
        if descriptor is None:
            return DisconnectResult(ok=False, error="Integration not found")
        if not is_plausible_account(user_identity):
            return DisconnectResult(ok=False, error="Valid user email is required")

        account = user_identity.strip().lower()
        await self._revoke(descriptor, account)

        key = _key(descriptor.id, account)
        override = DisconnectOverride(
            integration_id=descriptor.id,
            user_identity=account,
            set_at=self._clock(),
            ttl=self.override_ttl,
        )
        with self._lock:
            self._cache.pop(key, None)
            self._overrides[key] = override

        logger.info(f"Disconnected {descriptor.id} for {account}")
        return DisconnectResult(ok=True, message=f"{descriptor.display_name} disconnected")
