"""Tests for the gateway connector layer.

Tests cover:
- GatewayAuth and RequestPolicy
- HTTP status -> GatewayError mapping
- GatewayClient URL scheme, headers and failure classification
- StubGateway canned outcomes and call log

No network calls - GatewayClient runs over httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from integrationhub.connectors import (
    AUTH_URL,
    DISCONNECT,
    ClientRequestError,
    GatewayAuth,
    GatewayClient,
    GatewayConnectionError,
    GatewayError,
    GatewayResponse,
    GatewayTimeoutError,
    RateLimitError,
    RequestPolicy,
    ResourceNotFoundError,
    ServiceUnavailableError,
    StubGateway,
    UpstreamAuthError,
    map_http_error,
    normalize_account,
)

BASE_URL = "https://gateway.test/api/v1"


def make_client(handler, api_key="secret") -> GatewayClient:
    return GatewayClient(
        BASE_URL,
        auth=GatewayAuth(api_key),
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# Auth and policy
# =============================================================================


class TestGatewayAuth:
    """Tests for GatewayAuth."""

    def test_configured_with_key(self):
        """Auth is configured when a key is set."""
        assert GatewayAuth("k").is_configured() is True

    def test_not_configured_without_key(self):
        """Auth is not configured with an empty key."""
        assert GatewayAuth().is_configured() is False

    def test_headers_use_x_api_key(self):
        """The key is sent as x-api-key."""
        assert GatewayAuth("k").get_headers() == {"x-api-key": "k"}

    def test_no_headers_without_key(self):
        """No auth header is sent without a key."""
        assert GatewayAuth().get_headers() == {}


class TestRequestPolicy:
    """Tests for RequestPolicy defaults."""

    def test_defaults(self):
        """Default policy matches the probe settings."""
        policy = RequestPolicy()
        assert policy.timeout == 8.0
        assert not hasattr(policy, "max_attempts")
        assert policy.default_headers["Content-Type"] == "application/json"


# =============================================================================
# Error mapping
# =============================================================================


class TestMapHttpError:
    """Tests for map_http_error."""

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_codes(self, status):
        """401/403 map to UpstreamAuthError."""
        error = map_http_error(status, {"error": "denied"}, "gmail-v1")
        assert isinstance(error, UpstreamAuthError)
        assert error.status_code == status
        assert error.connector_name == "gmail-v1"
        assert error.retryable is False

    def test_not_found(self):
        """404 maps to ResourceNotFoundError."""
        assert isinstance(map_http_error(404), ResourceNotFoundError)

    def test_rate_limit_reads_retry_after(self):
        """429 maps to RateLimitError with Retry-After parsed."""
        error = map_http_error(429, headers={"retry-after": "7"})
        assert isinstance(error, RateLimitError)
        assert error.retry_after == 7.0
        assert error.retryable is False

    def test_server_errors_are_retryable(self):
        """5xx maps to a retryable ServiceUnavailableError."""
        error = map_http_error(503, "down")
        assert isinstance(error, ServiceUnavailableError)
        assert error.retryable is True

    def test_other_client_errors(self):
        """Other 4xx map to ClientRequestError."""
        assert isinstance(map_http_error(422), ClientRequestError)

    def test_long_body_is_truncated(self):
        """The body is cut in the error message."""
        error = map_http_error(400, "x" * 1000)
        assert len(str(error)) < 400


# =============================================================================
# GatewayClient
# =============================================================================


class TestGatewayClient:
    """Tests for GatewayClient over a mock transport."""

    def test_execute_url_params_and_headers(self):
        """execute POSTs to the action URL with the account and JSON body."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["account"] = request.url.params.get("account")
            seen["key"] = request.headers.get("x-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"output": {"ok": True}})

        client = make_client(handler)
        response = asyncio.run(
            client.execute("gmail-v1", "gmail.users.messages.list", {"q": "in:inbox"}, " Alice@Example.com ")
        )

        assert response.ok
        assert response.data == {"output": {"ok": True}}
        assert seen["method"] == "POST"
        assert seen["path"] == "/api/v1/connector/interactor/gmail-v1/action/gmail.users.messages.list/execute"
        assert seen["account"] == "alice@example.com"
        assert seen["key"] == "secret"
        assert seen["body"] == {"q": "in:inbox"}

    def test_auth_url_is_get(self):
        """auth_url GETs the auth-url endpoint."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"output": {"url": "https://auth"}})

        response = asyncio.run(make_client(handler).auth_url("slack-v1", "a@b.com"))
        assert seen == {"method": "GET", "path": "/api/v1/connector/interactor/slack-v1/auth-url"}
        assert response.data["output"]["url"] == "https://auth"

    def test_disconnect_is_post(self):
        """disconnect POSTs an empty body to the disconnect endpoint."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        asyncio.run(make_client(handler).disconnect("gmail-v1", "a@b.com"))
        assert seen == {
            "method": "POST",
            "path": "/api/v1/connector/interactor/gmail-v1/disconnect",
            "body": {},
        }

    def test_client_errors_are_returned_not_raised(self):
        """A 4xx comes back as a response for the caller to interpret."""
        client = make_client(lambda r: httpx.Response(401, json={"error": "unauthorized"}))
        response = asyncio.run(client.execute("gmail-v1", "x", {}, "a@b.com"))

        assert response.status_code == 401
        assert not response.ok
        with pytest.raises(UpstreamAuthError):
            response.raise_for_status("gmail-v1")

    def test_server_error_raises(self):
        """A 5xx raises ServiceUnavailableError."""
        client = make_client(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(ServiceUnavailableError):
            asyncio.run(client.execute("gmail-v1", "x", {}, "a@b.com"))

    def test_timeout_is_classified(self):
        """An httpx timeout becomes GatewayTimeoutError."""

        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayTimeoutError) as exc_info:
            asyncio.run(make_client(handler).execute("gmail-v1", "x", {}, "a@b.com"))
        assert exc_info.value.retryable is True

    def test_connection_failure_is_classified(self):
        """An httpx transport error becomes GatewayConnectionError."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayConnectionError):
            asyncio.run(make_client(handler).execute("gmail-v1", "x", {}, "a@b.com"))

    def test_non_json_body_is_text(self):
        """A non-JSON body is kept as text."""
        client = make_client(lambda r: httpx.Response(200, text="plain"))
        response = asyncio.run(client.execute("gmail-v1", "x", {}, "a@b.com"))
        assert response.data == "plain"

    def test_is_configured_follows_key(self):
        """is_configured reflects the API key."""
        assert make_client(lambda r: httpx.Response(200)).is_configured is True
        assert make_client(lambda r: httpx.Response(200), api_key="").is_configured is False

    def test_trailing_slash_stripped(self):
        """Base URL trailing slash is dropped."""
        assert GatewayClient(BASE_URL + "/", auth=GatewayAuth("k")).base_url == BASE_URL


class TestNormalizeAccount:
    """Tests for normalize_account."""

    def test_strips_and_lowercases(self):
        """Accounts are trimmed and lowercased."""
        assert normalize_account("  Bob@Example.COM ") == "bob@example.com"


# =============================================================================
# StubGateway
# =============================================================================


class TestStubGateway:
    """Tests for StubGateway."""

    def test_default_response(self):
        """Unconfigured calls answer 200 {}."""
        stub = StubGateway()
        response = asyncio.run(stub.execute("c", "a", {}, "x@y.com"))
        assert response.status_code == 200
        assert response.data == {}

    def test_sequence_last_outcome_repeats(self):
        """A sequence is consumed in order and its last entry repeats."""
        stub = StubGateway()
        stub.set_responses(
            "c", "a", [GatewayResponse(500), GatewayResponse(200, {"n": 2})]
        )
        codes = [asyncio.run(stub.execute("c", "a", {}, "x@y.com")).status_code for _ in range(3)]
        assert codes == [500, 200, 200]

    def test_exceptions_are_raised(self):
        """Exception outcomes are raised."""
        stub = StubGateway()
        stub.set_response("c", "a", GatewayError("boom"))
        with pytest.raises(GatewayError):
            asyncio.run(stub.execute("c", "a", {}, "x@y.com"))

    def test_call_log(self):
        """Calls are recorded per operation."""
        stub = StubGateway()
        asyncio.run(stub.execute("gmail-v1", "act", {"p": 1}, "A@B.com"))
        asyncio.run(stub.auth_url("gmail-v1", "a@b.com"))
        asyncio.run(stub.disconnect("gmail-v1", "a@b.com"))

        assert stub.call_count() == 3
        assert stub.call_count("execute", "act") == 1
        assert stub.was_called("disconnect")
        assert stub.calls_for("auth_url")[0].action == AUTH_URL
        assert stub.calls_for("disconnect")[0].action == DISCONNECT
        assert stub.calls_for("execute")[0].account == "a@b.com"

    def test_empty_sequence_rejected(self):
        """An empty outcome sequence is an error."""
        with pytest.raises(ValueError):
            StubGateway().set_responses("c", "a", [])

    def test_clear(self):
        """clear drops outcomes and calls."""
        stub = StubGateway()
        stub.set_json("c", "a", {"x": 1})
        asyncio.run(stub.execute("c", "a", {}, "x@y.com"))
        stub.clear()
        assert stub.call_count() == 0
        assert asyncio.run(stub.execute("c", "a", {}, "x@y.com")).data == {}
