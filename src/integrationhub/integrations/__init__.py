"""Integration catalog, connectivity probes and action tables."""

from .actions import ActionMap, build_params, build_rfc822_message
from .probes import (
    PROBES,
    BaseProbe,
    ProbeOutcome,
    ProbeRequest,
    ProbeStrategy,
    find_auth_error,
    probe_for,
)
from .registry import (
    DEFAULT_INTEGRATIONS,
    ConnectionRegistry,
    IntegrationCategory,
    IntegrationDescriptor,
)

__all__ = [
    # Registry
    "ConnectionRegistry",
    "IntegrationCategory",
    "IntegrationDescriptor",
    "DEFAULT_INTEGRATIONS",
    # Probes
    "ProbeStrategy",
    "ProbeRequest",
    "ProbeOutcome",
    "BaseProbe",
    "PROBES",
    "probe_for",
    "find_auth_error",
    # Actions
    "ActionMap",
    "build_params",
    "build_rfc822_message",
]
