"""Tests for per-integration connectivity probes."""

import pytest

from integrationhub.connectors import GatewayResponse
from integrationhub.integrations import PROBES, ProbeStrategy, find_auth_error, probe_for

ACCOUNT = "alice@example.com"


def interpret(integration_id, status_code, data):
    return PROBES[integration_id].is_connected_from_response(
        GatewayResponse(status_code=status_code, data=data), ACCOUNT
    )


class TestProbeRequests:
    """Tests for the probe request each strategy builds."""

    @pytest.mark.parametrize(
        "integration_id,action,params",
        [
            ("googlecalendar", "calendar.calendarList.list", {"minAccessRole": "reader"}),
            ("gmail", "gmail.users.getProfile", {"userId": "me"}),
            ("googledrive", "drive.about.get", {"fields": "user,storageQuota"}),
            ("slack", "auth.test", {}),
        ],
    )
    def test_requests(self, integration_id, action, params):
        """Each strategy issues a cheap read-only call."""
        request = PROBES[integration_id].build_probe_request(ACCOUNT)
        assert request.action == action
        assert request.params == params

    def test_strategies_satisfy_protocol(self):
        """Every built-in strategy implements ProbeStrategy."""
        assert all(isinstance(p, ProbeStrategy) for p in PROBES.values())

    def test_probe_for(self, registry):
        """Strategies are selected from the registry entry."""
        assert probe_for(registry.require("gmail")) is PROBES["gmail"]
        assert probe_for(registry.require("zoom")) is None

    def test_request_params_are_copies(self):
        """Mutating a built request does not affect the strategy."""
        request = PROBES["gmail"].build_probe_request(ACCOUNT)
        request.params["userId"] = "other"
        assert PROBES["gmail"].build_probe_request(ACCOUNT).params == {"userId": "me"}


class TestInterpretation:
    """Tests for reading probe responses."""

    @pytest.mark.parametrize("status", [401, 403, 404])
    def test_auth_status_codes_disconnect(self, status):
        """401/403/404 always mean disconnected."""
        outcome = interpret("gmail", status, {"emailAddress": ACCOUNT})
        assert outcome.connected is False

    def test_other_failures_disconnect(self):
        """Any non-2xx answer means disconnected."""
        assert interpret("gmail", 422, {}).connected is False

    def test_empty_200_is_inconclusive(self):
        """A 200 without proof of data is not a connection."""
        outcome = interpret("googlecalendar", 200, {})
        assert outcome.connected is False
        assert outcome.reason == "no proof of data in response"

    def test_calendar_connected_with_primary_account(self):
        """Calendar items prove the connection; the primary id is the account."""
        outcome = interpret(
            "googlecalendar",
            200,
            {"output": {"body": {"items": [{"id": "x@group"}, {"id": "cal@example.com", "primary": True}]}}},
        )
        assert outcome.connected is True
        assert outcome.account == "cal@example.com"

    def test_gmail_profile_in_output(self):
        """Gmail proof may sit directly under output."""
        outcome = interpret("gmail", 200, {"output": {"emailAddress": "g@example.com"}})
        assert outcome.connected is True
        assert outcome.account == "g@example.com"

    def test_drive_user_email(self):
        """Drive reports the user's email as the account."""
        outcome = interpret("googledrive", 200, {"body": {"user": {"emailAddress": "d@example.com"}}})
        assert outcome.account == "d@example.com"

    def test_drive_quota_falls_back_to_caller(self):
        """Without a user email the caller account is used."""
        outcome = interpret("googledrive", 200, {"storageQuota": {"limit": "1"}})
        assert outcome.connected is True
        assert outcome.account == ACCOUNT

    def test_slack_requires_ok(self):
        """Slack needs ok=true plus an id."""
        assert interpret("slack", 200, {"ok": False, "user_id": "U1"}).connected is False
        assert interpret("slack", 200, {"ok": True, "team_id": "T1"}).connected is True

    def test_nested_auth_error_wins_over_proof(self):
        """A nested auth error means disconnected even with a 200."""
        data = {"output": {"status_code": 401, "body": {"emailAddress": ACCOUNT}}}
        assert interpret("gmail", 200, data).connected is False


class TestFindAuthError:
    """Tests for nested auth error detection."""

    @pytest.mark.parametrize(
        "data",
        [
            {"output": {"body": {"error": {"code": 403, "message": "Forbidden"}}}},
            {"body": {"error": {"status": "UNAUTHENTICATED"}}},
            {"error": "Missing credential for account"},
            {"output": {"error": {"message": "Delegation denied for user"}}},
            {"message": "Action not found"},
            {"status_code": "401"},
        ],
    )
    def test_detected(self, data):
        """Known auth-failure shapes are detected."""
        assert find_auth_error(data) is not None

    @pytest.mark.parametrize(
        "data",
        [
            {"output": {"body": {"items": []}}},
            {"error": "quota exceeded"},
            {"error": {"code": 500, "message": "backend"}},
            None,
            "text",
        ],
    )
    def test_not_detected(self, data):
        """Ordinary payloads and non-auth errors are not auth failures."""
        assert find_auth_error(data) is None
