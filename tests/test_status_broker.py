"""Tests for StatusBroker.

Cover the cache and override rules: unknown ids never probe, overrides
beat cached connections, expired entries re-probe, and disconnected
outcomes live for a quarter of the connected TTL.
"""

import asyncio

import pytest

from conftest import USER_EMAIL, connect
from integrationhub.connectors import (
    AUTH_URL,
    DISCONNECT,
    GatewayConnectionError,
    GatewayResponse,
    RetryExecutor,
    ServiceUnavailableError,
    StubGateway,
)
from integrationhub.status import StatusBroker, extract_auth_url, is_plausible_account


def probe_count(stub: StubGateway) -> int:
    return stub.call_count("execute")


# =============================================================================
# get_status
# =============================================================================


class TestGetStatusValidation:
    """Tests for input validation in get_status."""

    def test_unknown_integration_no_io(self, broker, stub):
        """Unknown ids report not found without any gateway call."""
        result = asyncio.run(broker.get_status("myspace", USER_EMAIL))
        assert result.ok is False
        assert result.connected is False
        assert result.error == "Integration not found"
        assert stub.call_count() == 0

    @pytest.mark.parametrize("identity", ["", "not-an-email", "a b@example.com", None, 42])
    def test_invalid_identity(self, broker, stub, identity):
        """Implausible identities are rejected without probing."""
        result = asyncio.run(broker.get_status("gmail", identity))
        assert result.ok is False
        assert result.error == "Valid user email is required"
        assert stub.call_count() == 0

    def test_no_api_key(self, registry, retry, clock):
        """Without an API key everything is disconnected and nothing is cached."""
        stub = StubGateway(api_key_configured=False)
        broker = StatusBroker(registry, stub, retry, clock=clock)
        result = asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert result.ok is True
        assert result.connected is False
        assert stub.call_count() == 0
        assert broker.peek_cached("gmail", USER_EMAIL) is None

    def test_no_probe_strategy(self, broker, stub):
        """Integrations without a probe strategy are disconnected."""
        result = asyncio.run(broker.get_status("zoom", USER_EMAIL))
        assert result.connected is False
        assert stub.call_count() == 0


class TestGetStatusProbing:
    """Tests for probe outcomes."""

    def test_connected(self, broker, stub):
        """A probe with proof of data reports connected with the account."""
        connect(stub, "gmail")
        result = asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert result.ok is True
        assert result.connected is True
        assert result.account == USER_EMAIL
        call = stub.calls_for("execute")[0]
        assert call.connector_name == "gmail-v1"
        assert call.action == "gmail.users.getProfile"

    def test_upstream_auth_failure(self, broker, stub):
        """A 401 probe means disconnected."""
        stub.set_json("gmail-v1", "gmail.users.getProfile", {"error": "unauthorized"}, status_code=401)
        result = asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert result.ok is True
        assert result.connected is False

    def test_transient_failure_retried_then_disconnected(self, broker, stub, sleeper):
        """Exhausted retries resolve to disconnected, never an exception."""
        stub.set_response("gmail-v1", "gmail.users.getProfile", ServiceUnavailableError("down"))
        result = asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert result.connected is False
        assert probe_count(stub) == 3
        assert sleeper.delays == [1.0, 2.0]

    def test_transient_failure_recovers(self, broker, stub):
        """A probe that recovers before attempts run out reports connected."""
        stub.set_responses(
            "gmail-v1",
            "gmail.users.getProfile",
            [GatewayConnectionError("reset"), GatewayResponse(200, {"emailAddress": USER_EMAIL})],
        )
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True
        assert probe_count(stub) == 2

    def test_unexpected_exception_is_contained(self, broker, stub):
        """Unexpected errors still resolve to disconnected."""
        stub.set_response("gmail-v1", "gmail.users.getProfile", RuntimeError("bug"))
        result = asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert result.connected is False

    def test_identity_is_normalized(self, broker, stub):
        """Email case and padding do not create separate cache entries."""
        connect(stub, "gmail")
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        asyncio.run(broker.get_status("gmail", "  ALICE@example.com "))
        assert probe_count(stub) == 1
        assert stub.calls_for("execute")[0].account == USER_EMAIL


class TestStatusCache:
    """Tests for cache TTLs."""

    def test_connected_cached_for_full_ttl(self, broker, stub, clock):
        """Connected results are served from cache until the TTL elapses."""
        connect(stub, "gmail")
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        clock.advance(59)
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True
        assert probe_count(stub) == 1

        clock.advance(1)
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert probe_count(stub) == 2

    def test_disconnected_cached_for_quarter_ttl(self, broker, stub, clock):
        """Disconnected results live exactly TTL / 4."""
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        cached = broker.peek_cached("gmail", USER_EMAIL)
        assert cached.connected is False
        assert cached.ttl == broker.cache_ttl / 4 == 15.0

        clock.advance(14)
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert probe_count(stub) == 1
        clock.advance(1)
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert probe_count(stub) == 2

    def test_expired_entry_never_returned(self, broker, stub, clock):
        """After expiry the next call re-probes and sees the new state."""
        connect(stub, "gmail")
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True
        stub.set_json("gmail-v1", "gmail.users.getProfile", {}, status_code=403)
        clock.advance(60)
        assert broker.peek_cached("gmail", USER_EMAIL) is None
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is False

    def test_custom_ttl(self, registry, stub, retry, clock):
        """The TTL is configurable."""
        broker = StatusBroker(registry, stub, retry, clock=clock, cache_ttl=8)
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        assert broker.peek_cached("gmail", USER_EMAIL).ttl == 2

    def test_refresh_bypasses_cache(self, broker, stub):
        """refresh_status re-probes even with a live entry."""
        connect(stub, "gmail")
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        asyncio.run(broker.refresh_status("gmail", USER_EMAIL))
        assert probe_count(stub) == 2

    def test_invalidate_all(self, broker, stub):
        """invalidate() with no arguments clears every entry."""
        connect(stub, "gmail", "slack")
        asyncio.run(broker.get_status("gmail", USER_EMAIL))
        asyncio.run(broker.get_status("slack", USER_EMAIL))
        broker.invalidate()
        assert broker.peek_cached("gmail", USER_EMAIL) is None
        assert broker.peek_cached("slack", USER_EMAIL) is None


# =============================================================================
# disconnect / overrides
# =============================================================================


class TestDisconnect:
    """Tests for disconnect and the override it installs."""

    def test_override_beats_cached_connection(self, broker, stub):
        """A live override forces disconnected even over a cached connection."""
        connect(stub, "gmail")
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True

        result = asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        assert result.ok is True
        assert result.message == "Gmail disconnected"

        probes_before = probe_count(stub)
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is False
        assert probe_count(stub) == probes_before

    def test_override_survives_refresh(self, broker, stub):
        """refresh_status does not drop the override."""
        connect(stub, "gmail")
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        assert asyncio.run(broker.refresh_status("gmail", USER_EMAIL)).connected is False

    def test_override_expires(self, broker, stub, clock):
        """After the override TTL the pair is probed again."""
        connect(stub, "gmail")
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        clock.advance(3600)
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True
        assert broker.has_override("gmail", USER_EMAIL) is False

    def test_revoke_is_called(self, broker, stub):
        """disconnect asks the gateway to revoke the credential."""
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        call = stub.calls_for("disconnect")[0]
        assert call.connector_name == "gmail-v1"
        assert call.account == USER_EMAIL

    @pytest.mark.parametrize(
        "outcome",
        [
            GatewayResponse(404, {"error": "not found"}),
            GatewayResponse(200, {"ok": False, "error": "nope"}),
            GatewayResponse(401, {}),
            ServiceUnavailableError("down"),
        ],
    )
    def test_revoke_failure_does_not_fail_disconnect(self, broker, stub, outcome):
        """Revoke is best-effort; the local override still applies."""
        stub.set_response("gmail-v1", DISCONNECT, outcome)
        result = asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        assert result.ok is True
        assert broker.has_override("gmail", USER_EMAIL) is True

    def test_unknown_integration(self, broker, stub):
        """Unknown ids fail without any gateway call."""
        result = asyncio.run(broker.disconnect("myspace", USER_EMAIL))
        assert result.ok is False
        assert stub.call_count() == 0

    def test_override_is_per_pair(self, broker, stub):
        """Disconnecting one integration leaves others alone."""
        connect(stub, "gmail", "slack")
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        assert asyncio.run(broker.get_status("slack", USER_EMAIL)).connected is True


# =============================================================================
# auth URL
# =============================================================================


class TestAuthUrl:
    """Tests for get_auth_url."""

    def test_resolves_url(self, broker, stub):
        """The URL comes from output.url."""
        stub.set_json("slack-v1", AUTH_URL, {"output": {"url": "https://auth/slack"}})
        result = asyncio.run(broker.get_auth_url("slack", USER_EMAIL))
        assert result.ok is True
        assert result.auth_url == "https://auth/slack"

    def test_success_clears_override_and_cache(self, broker, stub):
        """A successful lookup clears the override so the next status probes."""
        connect(stub, "gmail")
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        stub.set_json("gmail-v1", AUTH_URL, {"url": "https://auth/gmail"})

        assert asyncio.run(broker.get_auth_url("gmail", USER_EMAIL)).ok is True
        assert broker.has_override("gmail", USER_EMAIL) is False
        assert asyncio.run(broker.get_status("gmail", USER_EMAIL)).connected is True

    def test_failure_keeps_override(self, broker, stub):
        """A failed lookup leaves the override in place."""
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        stub.set_json("gmail-v1", AUTH_URL, {"error": "bad"}, status_code=400)
        result = asyncio.run(broker.get_auth_url("gmail", USER_EMAIL))
        assert result.ok is False
        assert broker.has_override("gmail", USER_EMAIL) is True

    def test_missing_url(self, broker, stub):
        """A response without a URL is a failure."""
        stub.set_json("gmail-v1", AUTH_URL, {"output": {}})
        assert asyncio.run(broker.get_auth_url("gmail", USER_EMAIL)).ok is False

    def test_requires_key(self, registry, clock):
        """Without an API key no URL is requested."""
        stub = StubGateway(api_key_configured=False)
        broker = StatusBroker(registry, stub, RetryExecutor(), clock=clock)
        result = asyncio.run(broker.get_auth_url("gmail", USER_EMAIL))
        assert result.ok is False
        assert stub.call_count() == 0

    def test_clear_override_hook(self, broker):
        """clear_override reports whether anything was removed."""
        asyncio.run(broker.disconnect("gmail", USER_EMAIL))
        assert broker.clear_override("gmail", USER_EMAIL) is True
        assert broker.clear_override("gmail", USER_EMAIL) is False

    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"output": {"url": "u1"}}, "u1"),
            ({"url": "u2"}, "u2"),
            (" u3 ", "u3"),
            ({"output": {}}, None),
            (None, None),
        ],
    )
    def test_extract_auth_url(self, data, expected):
        """URL extraction accepts the three gateway shapes."""
        assert extract_auth_url(data) == expected


# =============================================================================
# Catalog helpers
# =============================================================================


class TestCatalog:
    """Tests for list_integrations and get_all_statuses."""

    def test_list_integrations(self, broker, registry):
        """The catalog lists every registered integration."""
        listed = broker.list_integrations()
        assert [i["id"] for i in listed] == registry.ids()

    def test_get_all_statuses(self, broker, stub):
        """Every integration is reported, in catalog order."""
        connect(stub, "gmail", "googledrive")
        statuses = asyncio.run(broker.get_all_statuses(USER_EMAIL))
        by_id = {s["id"]: s["connected"] for s in statuses}
        assert statuses[0]["id"] == "googlecalendar"
        assert by_id["gmail"] is True
        assert by_id["googledrive"] is True
        assert by_id["googlecalendar"] is False
        assert by_id["jira"] is False

    def test_plausible_account(self):
        """Email plausibility check."""
        assert is_plausible_account("a@b.co")
        assert not is_plausible_account("a@b")
        assert not is_plausible_account("@b.com")
