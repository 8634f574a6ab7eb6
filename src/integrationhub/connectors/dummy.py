"""Stub gateway for testing and offline runs.

StubGateway has the same async surface as GatewayClient without making
any network calls. Used for:
- Unit tests of the status broker and command router
- The CLI ``--offline`` mode

Outcomes are configured per (connector, action). The auth-url and
disconnect endpoints use the pseudo-actions ``AUTH_URL`` and ``DISCONNECT``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .base import RequestPolicy
from .gateway import GatewayResponse, normalize_account

AUTH_URL = "@auth-url"
DISCONNECT = "@disconnect"

Outcome = Union[GatewayResponse, BaseException]


@dataclass
class StubCall:
    """One recorded call."""

    operation: str
    connector_name: str
    action: str
    params: Dict[str, Any]
    account: str


class StubGateway:
    """Gateway stand-in with canned outcomes and a call log.

    Unconfigured calls answer ``200 {}``. A configured sequence is consumed
    one outcome per call; its last outcome repeats once the rest are used.
    Exceptions in a sequence are raised instead of returned.
    """

    def __init__(self, api_key_configured: bool = True):
        self._configured = api_key_configured
        self._outcomes: Dict[Tuple[str, str], List[Outcome]] = {}
        self._call_log: List[StubCall] = []
        self.default_response = GatewayResponse(status_code=200, data={})

    @property
    def is_configured(self) -> bool:
        """Mirror GatewayClient.is_configured."""
        return self._configured

    def set_response(self, connector_name: str, action: str, outcome: Outcome) -> None:
        """Always answer (connector, action) with ``outcome``."""
        self._outcomes[(connector_name, action)] = [outcome]

    def set_responses(
        self, connector_name: str, action: str, outcomes: Sequence[Outcome]
    ) -> None:
        """Answer successive calls with successive outcomes."""
        if not outcomes:
            raise ValueError("outcomes must not be empty")
        self._outcomes[(connector_name, action)] = list(outcomes)

    def set_json(
        self, connector_name: str, action: str, data: Any, status_code: int = 200
    ) -> None:
        """Shortcut for a JSON response with the given status."""
        self.set_response(connector_name, action, GatewayResponse(status_code=status_code, data=data))

    def clear(self) -> None:
        """Drop all canned outcomes and the call log."""
        self._outcomes.clear()
        self._call_log.clear()

    # -------------------------------------------------------------------------
    # Call log
    # -------------------------------------------------------------------------

    def get_call_log(self) -> List[StubCall]:
        """Get a copy of all recorded calls."""
        return list(self._call_log)

    def calls_for(self, operation: Optional[str] = None) -> List[StubCall]:
        """Recorded calls, optionally filtered by operation name."""
        return [c for c in self._call_log if operation is None or c.operation == operation]

    def was_called(self, operation: str) -> bool:
        """Check if an operation was called."""
        return any(c.operation == operation for c in self._call_log)

    def call_count(self, operation: Optional[str] = None, action: Optional[str] = None) -> int:
        """Count calls, optionally by operation and/or action."""
        return sum(
            1
            for c in self._call_log
            if (operation is None or c.operation == operation)
            and (action is None or c.action == action)
        )

    # -------------------------------------------------------------------------
    # Gateway surface
    # -------------------------------------------------------------------------

    def _next(self, connector_name: str, action: str) -> GatewayResponse:
        queue = self._outcomes.get((connector_name, action))
        if not queue:
            return self.default_response
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def _record(
        self, operation: str, connector_name: str, action: str, params: Any, account: str
    ) -> None:
        self._call_log.append(
            StubCall(
                operation=operation,
                connector_name=connector_name,
                action=action,
                params=dict(params or {}),
                account=normalize_account(account),
            )
        )

    async def execute(
        self,
        connector_name: str,
        action: str,
        params: Optional[Dict[str, Any]],
        account: str,
        policy: Optional[RequestPolicy] = None,
    ) -> GatewayResponse:
        """Record the call and return its canned outcome."""
        self._record("execute", connector_name, action, params, account)
        return self._next(connector_name, action)

    async def auth_url(
        self, connector_name: str, account: str, policy: Optional[RequestPolicy] = None
    ) -> GatewayResponse:
        """Record the call and return its canned outcome."""
        self._record("auth_url", connector_name, AUTH_URL, {}, account)
        return self._next(connector_name, AUTH_URL)

    async def disconnect(
        self, connector_name: str, account: str, policy: Optional[RequestPolicy] = None
    ) -> GatewayResponse:
        """Record the call and return its canned outcome."""
        self._record("disconnect", connector_name, DISCONNECT, {}, account)
        return self._next(connector_name, DISCONNECT)
