"""Command router.

Turns a StructuredCommand into a CommandResult:

    received -> validated -> identity_resolved -> connection_checked
             -> action_resolved -> dispatched -> normalized -> done

Special services (``briefing``) go identity_resolved -> bypassed -> done
without a connection check. Any stage may end the command in ``failed``.
Failures are raised as HubError subclasses inside the pipeline and turned
into a failed CommandResult at the ``process`` boundary; callers never see
an exception.
"""

import asyncio
import itertools
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from integrationhub.commands.briefing import DailyBriefingBuilder
from integrationhub.commands.models import CommandResult, CommandStage, StructuredCommand
from integrationhub.commands.normalize import detect_embedded_error, normalize_response
from integrationhub.commands.quick import DEFAULT_TIMEZONE, expand_quick_command
from integrationhub.commands.users import UserDirectory, UserRecord
from integrationhub.connectors.base import (
    DISPATCH_POLICY,
    GatewayError,
    RequestPolicy,
    UpstreamAuthError,
)
from integrationhub.connectors.gateway import GatewayResponse
from integrationhub.connectors.retry import RetryExecutor
from integrationhub.errors import (
    CommandValidationError,
    DispatchError,
    HubError,
    NotConnectedError,
    UnknownIntegrationError,
    UserNotFoundError,
)
from integrationhub.integrations.actions import ActionMap, build_params
from integrationhub.integrations.registry import ConnectionRegistry
from integrationhub.status.broker import StatusBroker, is_plausible_account

logger = logging.getLogger(__name__)

# Caller-facing service names -> integration ids
SERVICE_ALIASES: Dict[str, str] = {
    "calendar": "googlecalendar",
    "google.calendar": "googlecalendar",
    "googlecalendar": "googlecalendar",
    "gcal": "googlecalendar",
    "gmail": "gmail",
    "google.gmail": "gmail",
    "mail": "gmail",
    "drive": "googledrive",
    "google.drive": "googledrive",
    "googledrive": "googledrive",
    "slack": "slack",
}

BRIEFING_SERVICE = "briefing"

# Gmail write actions must come back with the created resource id
_GMAIL_CONFIRMED_ACTIONS = {
    "send_email": "email sending",
    "send_message": "email sending",
    "create_draft": "draft creation",
}

Summarizer = Callable[[str, str, Any], Optional[str]]
CommandInput = Union[StructuredCommand, Mapping[str, Any]]

_command_ids = itertools.count(1)


def resolve_alias(service: str) -> Optional[str]:
    """Integration id for a caller-facing service name, or None."""
    return SERVICE_ALIASES.get(service.strip().lower())


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "command"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def _has_created_id(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    if data.get("id"):
        return True
    message = data.get("message")
    return isinstance(message, dict) and bool(message.get("id"))


class _Trace:
    """Per-command stage tracker; every transition is logged at DEBUG."""

    def __init__(self, command_id: int):
        self.command_id = command_id
        self.stage = CommandStage.RECEIVED
        logger.debug(f"[cmd {command_id}] {self.stage.value}")

    def advance(self, stage: CommandStage, detail: str = "") -> None:
        self.stage = stage
        suffix = f" ({detail})" if detail else ""
        logger.debug(f"[cmd {self.command_id}] {stage.value}{suffix}")


class CommandRouter:
    """Validates, authorizes, dispatches and normalizes structured commands.

    Usage:
        router = CommandRouter(broker, registry, ActionMap(), gateway, retry, users)
        result = await router.process(
            {"service": "gmail", "action": "list_messages", "params": {}, "userId": "1"}
        )
    """

    def __init__(
        self,
        broker: StatusBroker,
        registry: ConnectionRegistry,
        action_map: ActionMap,
        gateway: Any,
        retry: RetryExecutor,
        users: UserDirectory,
        summarizer: Optional[Summarizer] = None,
        briefing: Optional[DailyBriefingBuilder] = None,
        dispatch_policy: RequestPolicy = DISPATCH_POLICY,
        tz_name: str = DEFAULT_TIMEZONE,
    ):
        """Initialize the router.

        Args:
            broker: Connection status broker
            registry: Integration catalog
            action_map: Abstract -> backend action tables
            gateway: GatewayClient (or StubGateway)
            retry: Retry executor for dispatch
            users: User directory for identity resolution
            summarizer: Optional presentation hook producing ``message``
            briefing: Daily briefing builder for the ``briefing`` service
            dispatch_policy: Request policy for dispatch calls
            tz_name: Time zone for quick command defaults
        """
        self.broker = broker
        self.registry = registry
        self.action_map = action_map
        self.gateway = gateway
        self.retry = retry
        self.users = users
        self.summarizer = summarizer
        self.briefing = briefing
        self.dispatch_policy = dispatch_policy
        self.tz_name = tz_name

    # =========================================================================
    # Public API
    # =========================================================================

    async def process(self, command: CommandInput) -> CommandResult:
        """Run one command through the pipeline. Never raises."""
        trace = _Trace(next(_command_ids))
        try:
            result = await self._run(command, trace)
        except HubError as e:
            logger.info(f"[cmd {trace.command_id}] failed at {trace.stage.value}: {e.reason}")
            trace.advance(CommandStage.FAILED)
            return CommandResult.fail(e.reason)
        except Exception as e:
            logger.exception(f"[cmd {trace.command_id}] unexpected error at {trace.stage.value}")
            trace.advance(CommandStage.FAILED)
            return CommandResult.fail(f"command processing failed: {e}")
        trace.advance(CommandStage.DONE)
        return result

    async def process_batch(self, commands: Sequence[CommandInput]) -> List[CommandResult]:
        """Run commands concurrently. Results keep the input order."""
        outcomes = await asyncio.gather(
            *(self.process(command) for command in commands), return_exceptions=True
        )
        results = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.error(f"Batch command raised: {outcome!r}")
                results.append(CommandResult.fail(f"command processing failed: {outcome}"))
            else:
                results.append(outcome)
        return results

    def create_quick_command(
        self,
        shorthand: str,
        user_id: str,
        override_params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[StructuredCommand]:
        """Expand a quick command shorthand (None if unknown or the user id is invalid)."""
        return expand_quick_command(shorthand, user_id, override_params, tz_name=self.tz_name)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _validate(self, command: CommandInput) -> StructuredCommand:
        if isinstance(command, StructuredCommand):
            return command
        if not isinstance(command, Mapping):
            raise CommandValidationError("validation: command must be an object")
        try:
            return StructuredCommand.model_validate(dict(command))
        except ValidationError as e:
            raise CommandValidationError(f"validation: {_format_validation_error(e)}")

    async def _resolve_user(self, cmd: StructuredCommand) -> UserRecord:
        user = await self.users.resolve(cmd.user_id)
        if user is None:
            raise UserNotFoundError(cmd.user_id)
        return user

    def _resolve_integration(self, cmd: StructuredCommand) -> str:
        integration_id = resolve_alias(cmd.service)
        if integration_id is None or integration_id not in self.registry:
            raise UnknownIntegrationError(cmd.service)
        return integration_id

    async def _run(self, command: CommandInput, trace: _Trace) -> CommandResult:
        cmd = self._validate(command)
        trace.advance(CommandStage.VALIDATED, f"{cmd.service}/{cmd.action}")

        user = await self._resolve_user(cmd)
        trace.advance(CommandStage.IDENTITY_RESOLVED)

        if cmd.service.strip().lower() == BRIEFING_SERVICE:
            trace.advance(CommandStage.BYPASSED)
            return await self._run_briefing(cmd, user)

        integration_id = self._resolve_integration(cmd)

        status = await self.broker.get_status(integration_id, user.email)
        if not status.connected:
            raise NotConnectedError(cmd.service)
        trace.advance(CommandStage.CONNECTION_CHECKED, integration_id)

        backend_action = self.action_map.resolve(integration_id, cmd.action)
        trace.advance(CommandStage.ACTION_RESOLVED, backend_action)

        # Slack reports a handle, not the email the credential is stored under
        account = status.account if is_plausible_account(status.account) else user.email
        params = build_params(integration_id, cmd.action, cmd.params, account)
        response = await self._dispatch(cmd, integration_id, backend_action, params, account, user)
        trace.advance(CommandStage.DISPATCHED, f"HTTP {response.status_code}")

        data = normalize_response(response.data)
        self._confirm(integration_id, cmd.action, data)
        trace.advance(CommandStage.NORMALIZED)

        return CommandResult.ok(data=data, message=self._summarize(integration_id, cmd.action, data))

    async def _dispatch(
        self,
        cmd: StructuredCommand,
        integration_id: str,
        backend_action: str,
        params: Dict[str, Any],
        account: str,
        user: UserRecord,
    ) -> GatewayResponse:
        connector = self.registry.require(integration_id).backend_connector_name

        async def attempt() -> GatewayResponse:
            response = await self.gateway.execute(
                connector, backend_action, params, account, policy=self.dispatch_policy
            )
            return response.raise_for_status(connector)

        try:
            response = await self.retry.run(attempt, label=f"dispatch {integration_id}/{cmd.action}")
        except UpstreamAuthError:
            self.broker.mark_disconnected(integration_id, user.email)
            raise NotConnectedError(cmd.service)
        except GatewayError as e:
            raise DispatchError(f"service execution failed: {e}")

        embedded = detect_embedded_error(response.data)
        if embedded is not None:
            if embedded.is_auth_failure:
                self.broker.mark_disconnected(integration_id, user.email)
                raise NotConnectedError(cmd.service)
            raise DispatchError(f"service execution failed: {embedded.message}")
        return response

    def _confirm(self, integration_id: str, action: str, data: Any) -> None:
        operation = _GMAIL_CONFIRMED_ACTIONS.get(action) if integration_id == "gmail" else None
        if operation and not _has_created_id(data):
            noun = "draft" if action == "create_draft" else "message"
            raise DispatchError(f"Gmail {operation} failed - no {noun} ID returned")

    async def _run_briefing(self, cmd: StructuredCommand, user: UserRecord) -> CommandResult:
        if cmd.action != "daily":
            raise HubError(f"Unsupported briefing action: {cmd.action}")
        if self.briefing is None:
            raise HubError("Daily briefing is not available")
        data = await self.briefing.build(user.email)
        return CommandResult.ok(data=data, message=self._summarize(BRIEFING_SERVICE, cmd.action, data))

    def _summarize(self, integration_id: str, action: str, data: Any) -> Optional[str]:
        if self.summarizer is None:
            return None
        try:
            return self.summarizer(integration_id, action, data)
        except Exception as e:
            logger.warning(f"Summarizer failed for {integration_id}/{action}: {e}")
            return None
