"""Command-level error taxonomy.

These are raised inside the command pipeline and turned into a failed
CommandResult at the ``CommandRouter.process`` boundary; none of them
escapes the public contract. Gateway failures live in
``integrationhub.connectors.base``.
"""

from typing import Optional


class HubError(Exception):
    """Base exception for command pipeline failures.

    ``reason`` is the caller-facing error string placed in CommandResult.error.
    """

    stage: str = "failed"

    def __init__(self, reason: str, stage: Optional[str] = None):
        self.reason = reason
        if stage is not None:
            self.stage = stage
        super().__init__(reason)


class CommandValidationError(HubError):
    """Malformed structured command. Never retried."""

    stage = "received"


class UserNotFoundError(HubError):
    """Caller's user id or email does not resolve to a user record."""

    stage = "validated"

    def __init__(self, user_id: str):
        super().__init__("user not found")
        self.user_id = user_id


class UnknownIntegrationError(HubError, LookupError):
    """Alias or integration id not in the static tables."""

    stage = "identity_resolved"

    def __init__(self, name: str, message: Optional[str] = None):
        super().__init__(message or f"unsupported service: {name}")
        self.name = name


class UnknownActionError(HubError, LookupError):
    """Abstract action not mapped for the integration."""

    stage = "connection_checked"

    def __init__(self, action: str, integration_id: str):
        super().__init__(f"Action {action} not supported for service {integration_id}")
        self.action = action
        self.integration_id = integration_id


class NotConnectedError(HubError):
    """Business condition: the user must connect the service first.

    Covers both "never connected" and "credential expired"; the remedy is
    the same.
    """

    stage = "identity_resolved"

    def __init__(self, service: str):
        super().__init__(f"Service {service} is not connected. Please connect it first.")
        self.service = service


class DispatchError(HubError):
    """Upstream call failed after retries, or returned an embedded error."""

    stage = "dispatched"
