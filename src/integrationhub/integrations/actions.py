"""Action map: abstract actions -> concrete backend actions.

One table per integration, loaded at import time and exposed read-only.
Also holds the per-integration parameter builders that reshape caller
params into what the backend action expects (Gmail RFC 822 payloads,
Drive search queries).
"""

from __future__ import annotations

import base64
import re
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from integrationhub.errors import UnknownActionError

_ACTION_TABLES: Dict[str, Dict[str, str]] = {
    "googlecalendar": {
        "create_event": "calendar.events.insert",
        "list_events": "calendar.events.list",
        "get_today_events": "calendar.events.list",
        "quick_add": "calendar.events.insert",
        "update_event": "calendar.events.update",
        "delete_event": "calendar.events.delete",
        "list_calendars": "calendar.calendarList.list",
        "get_event": "calendar.events.get",
    },
    "gmail": {
        "list_messages": "gmail.users.messages.list",
        "list_threads": "gmail.users.threads.list",
        "get_message": "gmail.users.messages.get",
        "get_thread": "gmail.users.threads.get",
        "send_message": "gmail.users.messages.send",
        "send_email": "gmail.users.messages.send",
        "create_draft": "gmail.users.drafts.create",
        "list_labels": "gmail.users.labels.list",
        "search_messages": "gmail.users.messages.list",
    },
    "googledrive": {
        "list_files": "drive.files.list",
        "get_file": "drive.files.get",
        "create_folder": "drive.files.create",
        "search_files": "drive.files.list",
        "upload_file": "drive.files.create",
        "delete_file": "drive.files.delete",
    },
    "slack": {
        "send_message": "chat.postMessage",
        "list_users": "users.list",
        "list_channels": "conversations.list",
        "get_user": "users.info",
    },
}


class ActionMap:
    """Read-only (integration id, abstract action) -> backend action table."""

    def __init__(self, tables: Optional[Mapping[str, Mapping[str, str]]] = None):
        source = _ACTION_TABLES if tables is None else tables
        self._tables: Mapping[str, Mapping[str, str]] = MappingProxyType(
            {
                integration.lower(): MappingProxyType(dict(actions))
                for integration, actions in source.items()
            }
        )

    def resolve(self, integration_id: str, action: str) -> str:
        """Concrete backend action for an abstract action.

        Raises:
            UnknownActionError: If the integration or action is not mapped
        """
        concrete = self._tables.get(integration_id.lower(), {}).get(action)
        if concrete is None:
            raise UnknownActionError(action, integration_id)
        return concrete

    def supports(self, integration_id: str, action: str) -> bool:
        """Check if an action is mapped for an integration."""
        return action in self._tables.get(integration_id.lower(), {})

    def actions_for(self, integration_id: str) -> List[str]:
        """Abstract actions available for an integration."""
        return list(self._tables.get(integration_id.lower(), {}).keys())

    def integrations(self) -> List[str]:
        """Integration ids that have an action table."""
        return list(self._tables.keys())


# =============================================================================
# Parameter builders
# =============================================================================

ParamBuilder = Callable[[str, Dict[str, Any], str], Dict[str, Any]]

DRIVE_QUERY_OPERATORS = re.compile(
    r"\b(contains|name|fullText|mimeType|parents|trashed|starred|shared)\b",
    re.IGNORECASE,
)
DRIVE_DEFAULT_FIELDS = "files(id,name,mimeType,modifiedTime,webViewLink,parents)"


def build_rfc822_message(params: Dict[str, Any], account: str) -> str:
    """Base64 (standard alphabet) RFC 822 message for the Gmail send/draft APIs.

    ``From`` defaults to the connected account. Lines are joined with ``\\n``.
    """
    sender = params.get("from") or account
    lines = [
        f"From: {sender}",
        f"To: {params.get('to') or ''}",
        f"Subject: {params.get('subject') or ''}",
        "",
        str(params.get("body") or ""),
    ]
    return base64.b64encode("\n".join(lines).encode("utf-8")).decode("ascii")


def build_gmail_params(action: str, params: Dict[str, Any], account: str) -> Dict[str, Any]:
    """Gmail calls always act on ``userId: "me"`` (the connected account)."""
    if action in ("list_messages", "search_messages"):
        built: Dict[str, Any] = {
            "userId": "me",
            "maxResults": params.get("maxResults") or 10,
            "q": params.get("q") or "in:inbox",
            "includeSpamTrash": False,
        }
        if params.get("pageToken"):
            built["pageToken"] = params["pageToken"]
        return built

    if action == "get_message":
        return {
            "id": params.get("id"),
            "userId": "me",
            "format": params.get("format") or "full",
        }

    if action in ("send_email", "send_message"):
        return {"userId": "me", "raw": build_rfc822_message(params, account)}

    if action == "create_draft":
        return {
            "userId": "me",
            "resource": {"message": {"raw": build_rfc822_message(params, account)}},
        }

    if action == "list_threads":
        built = {"userId": "me"}
        for key in ("maxResults", "pageToken", "q"):
            if params.get(key):
                built[key] = params[key]
        return built

    return {**params, "userId": "me"}


def build_drive_search_query(text: str) -> str:
    """Wrap plain text in ``name contains '...'`` unless it is already a query."""
    if DRIVE_QUERY_OPERATORS.search(text):
        return text
    escaped = text.replace("'", "\\'")
    return f"name contains '{escaped}'"


def build_drive_params(action: str, params: Dict[str, Any], account: str) -> Dict[str, Any]:
    if action != "search_files":
        return dict(params)

    other = {k: v for k, v in params.items() if k not in ("q", "query")}
    built = {
        **other,
        "pageSize": other.get("pageSize") or 20,
        "fields": other.get("fields") or DRIVE_DEFAULT_FIELDS,
    }
    search_text = params.get("q") or params.get("query")
    if isinstance(search_text, str) and search_text:
        built["q"] = build_drive_search_query(search_text)
    return built


PARAM_BUILDERS: Dict[str, ParamBuilder] = {
    "gmail": build_gmail_params,
    "googledrive": build_drive_params,
}


def build_params(
    integration_id: str, action: str, params: Dict[str, Any], account: str
) -> Dict[str, Any]:
    """Reshape caller params for the backend action.

    Never mutates ``params``; integrations without a builder get a copy.
    """
    builder = PARAM_BUILDERS.get(integration_id)
    if builder is None:
        return dict(params)
    return builder(action, dict(params), account)
