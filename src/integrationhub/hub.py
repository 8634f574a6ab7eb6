"""Wiring: build the broker, router and their collaborators from config.

One Hub per process. Entry points (the CLI, an HTTP route layer) call
``build_hub()`` once and pass the pieces around; nothing here is global.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from integrationhub.commands.briefing import DailyBriefingBuilder
from integrationhub.commands.router import CommandRouter
from integrationhub.commands.users import JsonFileUserDirectory, UserDirectory
from integrationhub.config import Config
from integrationhub.connectors.base import GatewayAuth, RequestPolicy
from integrationhub.connectors.gateway import GatewayClient
from integrationhub.connectors.retry import RetryExecutor, SleepFn
from integrationhub.integrations.actions import ActionMap
from integrationhub.integrations.registry import ConnectionRegistry
from integrationhub.presentation.summaries import make_summarizer
from integrationhub.status.broker import StatusBroker

logger = logging.getLogger(__name__)


@dataclass
class Hub:
    """The assembled service graph."""

    config: Config
    registry: ConnectionRegistry
    gateway: Any
    retry: RetryExecutor
    broker: StatusBroker
    router: CommandRouter


def build_hub(
    cfg: Optional[Config] = None,
    gateway: Optional[Any] = None,
    users: Optional[UserDirectory] = None,
    sleep: Optional[SleepFn] = None,
) -> Hub:
    """Assemble a Hub.

    Args:
        cfg: Configuration (defaults to the global config)
        gateway: Gateway to use instead of a GatewayClient (e.g. StubGateway)
        users: User directory (defaults to the configured JSON file)
        sleep: Async sleep for the retry executor (tests pass a no-op)

    Returns:
        Hub with every component wired to the same registry and gateway
    """
    if cfg is None:
        from integrationhub.config import config as cfg

    for issue in cfg.validate():
        logger.warning(f"Config: {issue}")

    registry = ConnectionRegistry.default(cfg.gateway.connector_names)
    probe_policy = RequestPolicy(timeout=cfg.gateway.probe_timeout_s)
    dispatch_policy = RequestPolicy(timeout=cfg.gateway.dispatch_timeout_s)

    if gateway is None:
        gateway = GatewayClient(
            cfg.gateway.base_url,
            auth=GatewayAuth(cfg.gateway.api_key),
            policy=dispatch_policy,
        )

    retry = RetryExecutor(
        max_attempts=cfg.retry_attempts,
        initial_delay=cfg.retry_initial_delay_s,
        sleep=sleep,
    )
    broker = StatusBroker(
        registry,
        gateway,
        retry,
        cache_ttl=cfg.status_cache_ttl_s,
        override_ttl=cfg.disconnect_override_ttl_s,
        probe_policy=probe_policy,
    )
    briefing = DailyBriefingBuilder(
        broker, gateway, retry, registry, tz_name=cfg.timezone, policy=dispatch_policy
    )
    router = CommandRouter(
        broker,
        registry,
        ActionMap(),
        gateway,
        retry,
        users or JsonFileUserDirectory(cfg.users_path),
        summarizer=make_summarizer(cfg.locale, cfg.timezone),
        briefing=briefing,
        dispatch_policy=dispatch_policy,
        tz_name=cfg.timezone,
    )
    return Hub(
        config=cfg,
        registry=registry,
        gateway=gateway,
        retry=retry,
        broker=broker,
        router=router,
    )
