"""Per-integration connectivity probes.

A probe is a lightweight read-only call whose only purpose is to tell
whether the gateway holds a working credential for (integration, user).
Each integration contributes a ProbeStrategy that knows:
- which action to call and with what params (``build_probe_request``)
- what "proof of data" looks like in a healthy answer
  (``is_connected_from_response``)

Interpretation rules shared by every strategy (BaseProbe.interpret):
1. HTTP 401/403/404 => disconnected
2. Nested error object with an auth-ish code/status/message => disconnected
3. HTTP 2xx without the integration's proof-of-data marker => disconnected
   (an empty 200 is inconclusive, not a success)
4. HTTP 2xx with proof of data => connected, upstream account if present
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

from integrationhub.connectors.gateway import GatewayResponse
from integrationhub.integrations.registry import IntegrationDescriptor

DISCONNECTED_CODES = frozenset({401, 403, 404})
DISCONNECTED_STATUSES = frozenset({"UNAUTHENTICATED", "PERMISSION_DENIED"})
DISCONNECTED_MESSAGE = re.compile(
    r"delegation denied"
    r"|missing credential|no credential|credentials? not found"
    r"|action not found",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ProbeRequest:
    """Action + params to send for a probe."""

    action: str
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of interpreting a probe response."""

    connected: bool
    account: Optional[str] = None
    reason: str = ""


@runtime_checkable
class ProbeStrategy(Protocol):
    """Capability set every per-integration probe provides."""

    def build_probe_request(self, account: str) -> ProbeRequest:
        ...

    def is_connected_from_response(
        self, response: GatewayResponse, caller_account: str
    ) -> ProbeOutcome:
        ...


# =============================================================================
# Response inspection helpers
# =============================================================================


def _candidate_bodies(data: Any) -> Iterator[Any]:
    """Yield the places a payload may live: body, output.body, output, top level."""
    if not isinstance(data, dict):
        if data is not None:
            yield data
        return
    output = data.get("output")
    if isinstance(data.get("body"), (dict, list)):
        yield data["body"]
    if isinstance(output, dict):
        if isinstance(output.get("body"), (dict, list)):
            yield output["body"]
        yield output
    yield data


def _coerce_code(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def find_auth_error(data: Any) -> Optional[str]:
    """Look for a nested error that means "no usable credential".

    Returns:
        A short reason string, or None when no such error is present
    """
    for candidate in _candidate_bodies(data):
        if not isinstance(candidate, dict):
            continue

        embedded_status = _coerce_code(candidate.get("status_code"))
        if embedded_status in DISCONNECTED_CODES:
            return f"embedded status_code {embedded_status}"

        error = candidate.get("error")
        if isinstance(error, str):
            if DISCONNECTED_MESSAGE.search(error):
                return f"error message: {error}"
            continue
        if not isinstance(error, dict):
            continue

        code = _coerce_code(error.get("code"))
        if code in DISCONNECTED_CODES:
            return f"error code {code}"
        status = error.get("status")
        if isinstance(status, str) and status.upper() in DISCONNECTED_STATUSES:
            return f"error status {status}"
        message = error.get("message")
        if isinstance(message, str) and DISCONNECTED_MESSAGE.search(message):
            return f"error message: {message}"

    for key in ("message", "detail"):
        value = data.get(key) if isinstance(data, dict) else None
        if isinstance(value, str) and DISCONNECTED_MESSAGE.search(value):
            return f"{key}: {value}"
    return None


def first_payload(data: Any, predicate) -> Optional[Dict[str, Any]]:
    """First candidate body (dict) that satisfies ``predicate``."""
    for candidate in _candidate_bodies(data):
        if isinstance(candidate, dict) and predicate(candidate):
            return candidate
    return None


# =============================================================================
# Strategies
# =============================================================================


class BaseProbe:
    """Shared interpretation; subclasses define the request and the proof."""

    action: str = ""
    params: Dict[str, Any] = {}

    def build_probe_request(self, account: str) -> ProbeRequest:
        return ProbeRequest(action=self.action, params=dict(self.params))

    def has_proof(self, payload: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def extract_account(self, payload: Dict[str, Any]) -> Optional[str]:
        return None

    def is_connected_from_response(
        self, response: GatewayResponse, caller_account: str
    ) -> ProbeOutcome:
        return self.interpret(response, caller_account)

    def interpret(self, response: GatewayResponse, caller_account: str) -> ProbeOutcome:
        if response.status_code in DISCONNECTED_CODES:
            return ProbeOutcome(False, reason=f"HTTP {response.status_code}")
        if not response.ok:
            return ProbeOutcome(False, reason=f"HTTP {response.status_code}")

        auth_error = find_auth_error(response.data)
        if auth_error:
            return ProbeOutcome(False, reason=auth_error)

        payload = first_payload(response.data, self.has_proof)
        if payload is None:
            return ProbeOutcome(False, reason="no proof of data in response")

        account = self.extract_account(payload) or caller_account
        return ProbeOutcome(True, account=account, reason="proof of data")


class CalendarProbe(BaseProbe):
    """List calendars; a healthy answer carries ``items``."""

    action = "calendar.calendarList.list"
    params = {"minAccessRole": "reader"}

    def has_proof(self, payload: Dict[str, Any]) -> bool:
        return isinstance(payload.get("items"), list) or payload.get("kind") == "calendar#calendarList"

    def extract_account(self, payload: Dict[str, Any]) -> Optional[str]:
        for item in payload.get("items") or []:
            if isinstance(item, dict) and item.get("primary") and isinstance(item.get("id"), str):
                return item["id"]
        return None


class GmailProbe(BaseProbe):
    """Read the mail profile; a healthy answer carries ``emailAddress``."""

    action = "gmail.users.getProfile"
    params = {"userId": "me"}

    def has_proof(self, payload: Dict[str, Any]) -> bool:
        address = payload.get("emailAddress")
        return (isinstance(address, str) and "@" in address) or isinstance(payload.get("labels"), list)

    def extract_account(self, payload: Dict[str, Any]) -> Optional[str]:
        address = payload.get("emailAddress")
        return address if isinstance(address, str) and "@" in address else None


class DriveProbe(BaseProbe):
    """Read storage quota; a healthy answer carries ``user`` or ``storageQuota``."""

    action = "drive.about.get"
    params = {"fields": "user,storageQuota"}

    def has_proof(self, payload: Dict[str, Any]) -> bool:
        return isinstance(payload.get("user"), dict) or isinstance(payload.get("storageQuota"), dict)

    def extract_account(self, payload: Dict[str, Any]) -> Optional[str]:
        user = payload.get("user")
        if isinstance(user, dict) and isinstance(user.get("emailAddress"), str):
            return user["emailAddress"]
        return None


class SlackProbe(BaseProbe):
    """auth.test; a healthy answer has ``ok: true`` and a user or team id."""

    action = "auth.test"
    params: Dict[str, Any] = {}

    def has_proof(self, payload: Dict[str, Any]) -> bool:
        return payload.get("ok") is True and bool(payload.get("user_id") or payload.get("team_id"))

    def extract_account(self, payload: Dict[str, Any]) -> Optional[str]:
        value = payload.get("user") or payload.get("user_id")
        return value if isinstance(value, str) else None


PROBES: Dict[str, ProbeStrategy] = {
    "googlecalendar": CalendarProbe(),
    "gmail": GmailProbe(),
    "googledrive": DriveProbe(),
    "slack": SlackProbe(),
}


def probe_for(descriptor: IntegrationDescriptor) -> Optional[ProbeStrategy]:
    """Strategy for an integration, or None when it cannot be probed."""
    return PROBES.get(descriptor.id)
