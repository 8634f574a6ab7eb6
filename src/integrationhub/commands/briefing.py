"""Daily briefing.

Aggregates today's calendar, unread mail and recent Drive activity for one
account into a single structured payload. Services the user has not
connected are reported as such and skipped; a failed fetch for one service
becomes an ``{"error": ...}`` entry in its summary.

The payload is data only. Rendering it for humans is the presentation
layer's job.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from integrationhub.commands.normalize import detect_embedded_error, normalize_response
from integrationhub.commands.quick import DEFAULT_TIMEZONE, day_window
from integrationhub.connectors.base import DISPATCH_POLICY, GatewayError, RequestPolicy
from integrationhub.connectors.gateway import GatewayResponse
from integrationhub.connectors.retry import RetryExecutor
from integrationhub.errors import DispatchError
from integrationhub.integrations.registry import ConnectionRegistry
from integrationhub.status.broker import StatusBroker

logger = logging.getLogger(__name__)

# Briefing section -> integration id
BRIEFING_SERVICES = {
    "calendar": "googlecalendar",
    "gmail": "gmail",
    "drive": "googledrive",
}

WORKDAY_START_HOUR = 9
WORKDAY_END_HOUR = 18
MIN_FREE_BLOCK = timedelta(hours=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_instant(value: Any, tz: ZoneInfo) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp or a bare date (start of day in ``tz``)."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _event_start(event: Dict[str, Any], tz: ZoneInfo) -> Optional[datetime]:
    start = event.get("start") or {}
    return _parse_instant(start.get("dateTime") or start.get("date"), tz)


def _items(payload: Any, key: str) -> List[Dict[str, Any]]:
    if isinstance(payload, dict) and isinstance(payload.get(key), list):
        return [item for item in payload[key] if isinstance(item, dict)]
    return []


def free_time_blocks(
    events: List[Dict[str, Any]], day: datetime, tz: ZoneInfo, limit: int = 3
) -> List[Dict[str, Any]]:
    """Gaps of at least an hour between timed events within working hours."""
    timed = []
    for event in events:
        start = _parse_instant((event.get("start") or {}).get("dateTime"), tz)
        if start is None:
            continue
        end = _parse_instant((event.get("end") or {}).get("dateTime"), tz) or start
        timed.append((start, end))
    timed.sort(key=lambda pair: pair[0])

    local_day = day.astimezone(tz)
    cursor = local_day.replace(hour=WORKDAY_START_HOUR, minute=0, second=0, microsecond=0)
    workday_end = local_day.replace(hour=WORKDAY_END_HOUR, minute=0, second=0, microsecond=0)

    blocks = []
    for start, end in timed:
        if cursor >= workday_end:
            break
        gap_end = min(start, workday_end)
        if gap_end - cursor >= MIN_FREE_BLOCK:
            blocks.append((cursor, gap_end))
        cursor = max(cursor, end)
    if workday_end - cursor >= MIN_FREE_BLOCK:
        blocks.append((cursor, workday_end))

    return [
        {
            "start": s.astimezone(tz).strftime("%H:%M"),
            "end": e.astimezone(tz).strftime("%H:%M"),
            "hours": int((e - s).total_seconds() // 3600),
        }
        for s, e in blocks[:limit]
    ]


class DailyBriefingBuilder:
    """Builds the daily briefing payload for one account."""

    def __init__(
        self,
        broker: StatusBroker,
        gateway: Any,
        retry: RetryExecutor,
        registry: ConnectionRegistry,
        clock: Optional[Callable[[], datetime]] = None,
        tz_name: str = DEFAULT_TIMEZONE,
        policy: RequestPolicy = DISPATCH_POLICY,
    ):
        self.broker = broker
        self.gateway = gateway
        self.retry = retry
        self.registry = registry
        self.clock = clock or _utcnow
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self.policy = policy

    async def _fetch(self, integration_id: str, action: str, params: Dict[str, Any], account: str) -> Any:
        """Run one backend action and return its normalized payload.

        Raises:
            GatewayError: Upstream failure after retries
            DispatchError: Upstream error embedded in a 2xx response
        """
        connector = self.registry.require(integration_id).backend_connector_name

        async def attempt() -> GatewayResponse:
            response = await self.gateway.execute(connector, action, params, account, policy=self.policy)
            return response.raise_for_status(connector)

        response = await self.retry.run(attempt, label=f"briefing {integration_id}")
        embedded = detect_embedded_error(response.data)
        if embedded is not None:
            raise DispatchError(embedded.message)
        return normalize_response(response.data)

    async def calendar_summary(self, account: str, now: datetime) -> Dict[str, Any]:
        time_min, time_max = day_window(self.tz_name, now)
        payload = await self._fetch(
            "googlecalendar",
            "calendar.events.list",
            {
                "calendarId": "primary",
                "timeMin": time_min,
                "timeMax": time_max,
                "singleEvents": True,
                "orderBy": "startTime",
                "maxResults": 20,
            },
            account,
        )
        events = _items(payload, "items")

        next_event = None
        for event in events:
            start = _event_start(event, self.tz)
            if start is not None and start > now:
                next_event = {
                    "title": event.get("summary") or "No Title",
                    "start": start.astimezone(self.tz).isoformat(),
                    "location": event.get("location"),
                }
                break

        return {
            "today_events": len(events),
            "next_event": next_event,
            "free_time_blocks": free_time_blocks(events, now, self.tz),
            "events": [
                {
                    "title": event.get("summary") or "No Title",
                    "start": (event.get("start") or {}).get("dateTime"),
                    "all_day": "dateTime" not in (event.get("start") or {}),
                    "location": event.get("location"),
                }
                for event in events[:5]
            ],
        }

    async def gmail_summary(self, account: str, now: datetime) -> Dict[str, Any]:
        payload = await self._fetch(
            "gmail",
            "gmail.users.messages.list",
            {"userId": "me", "q": "is:unread", "maxResults": 50},
            account,
        )
        messages = _items(payload, "messages")
        return {
            "unread_count": len(messages),
            "today_messages": len(messages[:20]),
        }

    async def drive_summary(self, account: str, now: datetime) -> Dict[str, Any]:
        payload = await self._fetch(
            "googledrive",
            "drive.files.list",
            {
                "pageSize": 20,
                "orderBy": "modifiedTime desc",
                "q": "trashed=false",
                "fields": "files(id,name,mimeType,modifiedTime,shared,owners)",
            },
            account,
        )
        files = _items(payload, "files")
        day_start = _parse_instant(day_window(self.tz_name, now)[0], self.tz)

        modified_today = 0
        for f in files:
            modified = _parse_instant(f.get("modifiedTime"), self.tz)
            if modified is not None and day_start is not None and modified >= day_start:
                modified_today += 1

        return {
            "recent_files": len(files),
            "today_modified": modified_today,
            "shared": sum(1 for f in files if f.get("shared") is True),
            "recent_file_names": [
                {
                    "name": f.get("name"),
                    "type": "folder" if "folder" in str(f.get("mimeType") or "") else "file",
                    "modified": f.get("modifiedTime"),
                }
                for f in files[:5]
            ],
        }

    async def _section(self, name: str, account: str, now: datetime) -> Dict[str, Any]:
        fetchers = {
            "calendar": self.calendar_summary,
            "gmail": self.gmail_summary,
            "drive": self.drive_summary,
        }
        try:
            return await fetchers[name](account, now)
        except (GatewayError, DispatchError) as e:
            logger.warning(f"Briefing {name} fetch failed: {e}")
            return {"error": f"Failed to fetch {name} data"}
        except Exception as e:
            logger.exception(f"Briefing {name} summary raised unexpectedly: {e}")
            return {"error": f"{name} summary failed"}

    async def build(self, account: str) -> Dict[str, Any]:
        """Build today's briefing for ``account``.

        Returns:
            Dict with ``date``, ``timestamp``, ``services`` (connected flags)
            and ``summary`` (one entry per section, None when not connected)
        """
        now = self.clock()
        sections = list(BRIEFING_SERVICES)

        statuses = await asyncio.gather(
            *(self.broker.get_status(BRIEFING_SERVICES[s], account) for s in sections)
        )
        connected = {s: st.connected for s, st in zip(sections, statuses)}

        live = [s for s in sections if connected[s]]
        summaries = await asyncio.gather(*(self._section(s, account, now) for s in live))
        summary: Dict[str, Optional[Dict[str, Any]]] = {s: None for s in sections}
        summary.update(zip(live, summaries))

        logger.info(f"Built daily briefing with {len(live)}/{len(sections)} services connected")
        return {
            "date": now.astimezone(self.tz).date().isoformat(),
            "timestamp": now.astimezone(timezone.utc).isoformat(),
            "services": connected,
            "summary": summary,
        }
