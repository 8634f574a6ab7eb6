"""Quick command table.

Shorthands (the UI's quick-start buttons) that expand into a full
StructuredCommand. Defaults that depend on the current time are computed
at expansion time in the configured time zone.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from integrationhub.commands.models import StructuredCommand

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Seoul"

RECENT_FILE_FIELDS = "files(id,name,mimeType,modifiedTime,webViewLink)"


# =============================================================================
# Time helpers
# =============================================================================


def now_in(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Current (or given) instant as an aware datetime in ``tz_name``."""
    tz = ZoneInfo(tz_name)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def day_window(tz_name: str, now: Optional[datetime] = None) -> Tuple[str, str]:
    """ISO start (00:00:00) and end (23:59:59) of the local day in ``tz_name``."""
    local = now_in(tz_name, now)
    start = datetime.combine(local.date(), time(0, 0, 0), tzinfo=local.tzinfo)
    end = datetime.combine(local.date(), time(23, 59, 59), tzinfo=local.tzinfo)
    return start.isoformat(), end.isoformat()


# =============================================================================
# Table
# =============================================================================

DefaultsFactory = Callable[[datetime, str], Dict[str, Any]]


@dataclass(frozen=True)
class QuickCommand:
    """One shorthand: target service/action plus its default params."""

    service: str
    action: str
    defaults: Dict[str, Any] = field(default_factory=dict)
    dynamic: Optional[DefaultsFactory] = None

    def default_params(self, now: datetime, tz_name: str) -> Dict[str, Any]:
        params = dict(self.defaults)
        if self.dynamic is not None:
            params.update(self.dynamic(now, tz_name))
        return params


def _todays_window(now: datetime, tz_name: str) -> Dict[str, Any]:
    time_min, time_max = day_window(tz_name, now)
    return {"timeMin": time_min, "timeMax": time_max}


def _next_hour_slot(now: datetime, tz_name: str) -> Dict[str, Any]:
    return {
        "start": {"dateTime": (now + timedelta(hours=1)).isoformat(), "timeZone": tz_name},
        "end": {"dateTime": (now + timedelta(hours=2)).isoformat(), "timeZone": tz_name},
    }


QUICK_COMMANDS: Dict[str, QuickCommand] = {
    "getTodaysEvents": QuickCommand(
        "google.calendar",
        "list_events",
        {"calendarId": "primary", "singleEvents": True, "orderBy": "startTime"},
        dynamic=_todays_window,
    ),
    "listCalendars": QuickCommand("google.calendar", "list_calendars"),
    "listEvents": QuickCommand(
        "google.calendar", "list_events", {"singleEvents": True, "orderBy": "startTime"}
    ),
    "getEvent": QuickCommand("google.calendar", "get_event"),
    "listMessages": QuickCommand("gmail", "list_messages"),
    "listThreads": QuickCommand("gmail", "list_threads"),
    "getMessage": QuickCommand("gmail", "get_message"),
    "sendEmail": QuickCommand("gmail", "send_email"),
    "listLabels": QuickCommand("gmail", "list_labels", {"userId": "me"}),
    "getRecentFiles": QuickCommand(
        "googledrive",
        "list_files",
        {"pageSize": 10, "orderBy": "modifiedTime desc", "fields": RECENT_FILE_FIELDS},
    ),
    "createEvent": QuickCommand(
        "google.calendar",
        "quick_add",
        {"calendarId": "primary", "summary": "New Meeting"},
        dynamic=_next_hour_slot,
    ),
    "createDraft": QuickCommand(
        "gmail",
        "create_draft",
        {"userId": "me", "to": "", "subject": "New Draft", "body": "Draft content"},
    ),
    "createFolder": QuickCommand(
        "googledrive",
        "create_folder",
        {"name": "New Folder", "mimeType": "application/vnd.google-apps.folder"},
    ),
    "searchFiles": QuickCommand(
        "googledrive", "search_files", {"pageSize": 20, "fields": RECENT_FILE_FIELDS}
    ),
    "getDailyBriefing": QuickCommand("briefing", "daily"),
    "sendSlackMessage": QuickCommand("slack", "send_message", {"channel": "#general", "text": ""}),
    "listSlackUsers": QuickCommand("slack", "list_users"),
}


def list_quick_commands() -> List[str]:
    """Names of all available shorthands."""
    return list(QUICK_COMMANDS.keys())


def expand_quick_command(
    shorthand: str,
    user_id: str,
    override_params: Optional[Mapping[str, Any]] = None,
    *,
    tz_name: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
    table: Optional[Mapping[str, QuickCommand]] = None,
) -> Optional[StructuredCommand]:
    """Expand a shorthand into a StructuredCommand.

    Args:
        shorthand: Quick command name (e.g. "getTodaysEvents")
        user_id: Caller's user id
        override_params: Shallow-merged on top of the defaults
        tz_name: IANA zone for time-dependent defaults
        now: Reference instant (defaults to the current time)
        table: Alternate table (defaults to QUICK_COMMANDS)

    Returns:
        The command, or None for an unknown shorthand or an invalid user id
    """
    entry = (table if table is not None else QUICK_COMMANDS).get(shorthand)
    if entry is None:
        logger.warning(f"Unknown quick command: {shorthand}")
        return None

    local_now = now_in(tz_name, now)
    params = {**entry.default_params(local_now, tz_name), **dict(override_params or {})}
    try:
        return StructuredCommand(
            service=entry.service, action=entry.action, params=params, user_id=user_id
        )
    except ValidationError as e:
        logger.warning(f"Cannot expand quick command {shorthand}: {e.error_count()} validation error(s)")
        return None
