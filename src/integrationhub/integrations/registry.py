"""Connection registry: the static catalog of connectable integrations.

Each integration has an abstract id (used by callers and the status cache)
and a backend connector name (used by the gateway). The catalog is built
once at startup and cannot be modified afterwards; connector names can be
overridden from configuration (IH_CONNECTOR_NAMES) at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from integrationhub.errors import UnknownIntegrationError


class IntegrationCategory(str, Enum):
    """Category shown next to an integration."""

    PRODUCTIVITY = "productivity"
    COMMUNICATION = "communication"
    STORAGE = "storage"
    CALENDAR = "calendar"
    DEVELOPMENT = "development"
    OTHER = "other"


@dataclass(frozen=True)
class IntegrationDescriptor:
    """Immutable description of one integration. Identity is ``id``."""

    id: str
    display_name: str
    backend_connector_name: str
    category: IntegrationCategory = IntegrationCategory.OTHER
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        """Serialize for the route layer / CLI."""
        return {
            "id": self.id,
            "name": self.display_name,
            "description": self.description,
            "connector": self.backend_connector_name,
            "category": self.category.value,
        }


DEFAULT_INTEGRATIONS = (
    IntegrationDescriptor(
        id="googlecalendar",
        display_name="Google Calendar",
        backend_connector_name="googlecalendar-v1",
        category=IntegrationCategory.CALENDAR,
        description="Sync and manage your Google Calendar events",
    ),
    IntegrationDescriptor(
        id="gmail",
        display_name="Gmail",
        backend_connector_name="gmail-v1",
        category=IntegrationCategory.COMMUNICATION,
        description="Access and manage your Gmail emails",
    ),
    IntegrationDescriptor(
        id="googledrive",
        display_name="Google Drive",
        backend_connector_name="googledrive-v1",
        category=IntegrationCategory.STORAGE,
        description="Access and manage your Google Drive files",
    ),
    IntegrationDescriptor(
        id="slack",
        display_name="Slack",
        backend_connector_name="slack-v1",
        category=IntegrationCategory.COMMUNICATION,
        description="Connect with your team workspace",
    ),
    IntegrationDescriptor(
        id="teams",
        display_name="Microsoft Teams",
        backend_connector_name="teams-v1",
        category=IntegrationCategory.COMMUNICATION,
        description="Collaborate with Microsoft Teams",
    ),
    IntegrationDescriptor(
        id="zoom",
        display_name="Zoom",
        backend_connector_name="zoom-v1",
        category=IntegrationCategory.COMMUNICATION,
        description="Video conferencing and meetings",
    ),
    IntegrationDescriptor(
        id="github",
        display_name="GitHub",
        backend_connector_name="github-v1",
        category=IntegrationCategory.DEVELOPMENT,
        description="Code repository and collaboration",
    ),
    IntegrationDescriptor(
        id="gitlab",
        display_name="GitLab",
        backend_connector_name="gitlab-v1",
        category=IntegrationCategory.DEVELOPMENT,
        description="DevOps platform and repository",
    ),
    IntegrationDescriptor(
        id="jira",
        display_name="Jira",
        backend_connector_name="jira-v1",
        category=IntegrationCategory.DEVELOPMENT,
        description="Project management and issue tracking",
    ),
)


class ConnectionRegistry:
    """Read-only catalog of integrations keyed by id.

    Usage:
        registry = ConnectionRegistry.default()
        descriptor = registry.require("gmail")
        descriptor.backend_connector_name  # "gmail-v1"
    """

    def __init__(
        self,
        descriptors: Iterable[IntegrationDescriptor],
        connector_overrides: Optional[Mapping[str, str]] = None,
    ):
        """Build the catalog.

        Args:
            descriptors: Integration descriptors (ids must be unique)
            connector_overrides: Optional id -> connector name replacements

        Raises:
            ValueError: On duplicate ids
        """
        overrides = {k.lower(): v for k, v in (connector_overrides or {}).items()}
        entries: Dict[str, IntegrationDescriptor] = {}
        for descriptor in descriptors:
            key = descriptor.id.lower()
            if key in entries:
                raise ValueError(f"Duplicate integration id: '{descriptor.id}'")
            if key in overrides:
                descriptor = replace(descriptor, backend_connector_name=overrides[key])
            entries[key] = descriptor
        self._entries: Mapping[str, IntegrationDescriptor] = MappingProxyType(entries)

    @classmethod
    def default(cls, connector_overrides: Optional[Mapping[str, str]] = None) -> "ConnectionRegistry":
        """Registry with the built-in catalog."""
        return cls(DEFAULT_INTEGRATIONS, connector_overrides)

    def get(self, integration_id: str) -> Optional[IntegrationDescriptor]:
        """Get a descriptor by id (case-insensitive), or None."""
        if not isinstance(integration_id, str):
            return None
        return self._entries.get(integration_id.strip().lower())

    def require(self, integration_id: str) -> IntegrationDescriptor:
        """Get a descriptor by id.

        Raises:
            UnknownIntegrationError: If the id is not registered
        """
        descriptor = self.get(integration_id)
        if descriptor is None:
            raise UnknownIntegrationError(
                str(integration_id), f"Integration not found: {integration_id}"
            )
        return descriptor

    def list(self) -> List[IntegrationDescriptor]:
        """All descriptors in catalog order."""
        return list(self._entries.values())

    def ids(self) -> List[str]:
        """All integration ids in catalog order."""
        return list(self._entries.keys())

    def __contains__(self, integration_id: object) -> bool:
        return isinstance(integration_id, str) and self.get(integration_id) is not None

    def __iter__(self) -> Iterator[IntegrationDescriptor]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)
