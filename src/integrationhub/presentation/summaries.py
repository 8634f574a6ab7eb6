"""Human-readable summaries of normalized command results.

Kept outside the command core: the router only sees a ``Summarizer``
callable ``(integration_id, action, data) -> str | None``. Strings come
from per-locale tables; unknown locales fall back to English.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

Summarizer = Callable[[str, str, Any], Optional[str]]

DEFAULT_LOCALE = "en"

STRINGS: Dict[str, Dict[str, str]] = {
    "en": {
        "no_events": "No events scheduled.",
        "events_header": "Schedule ({count} events):",
        "all_day": "All day",
        "event_created": "Event created: {title} ({time})",
        "time_tbd": "Time TBD",
        "new_event": "New event",
        "no_title": "No title",
        "no_messages": "No emails found.",
        "message_count": "Found {count} messages.",
        "thread_count": "Found {count} threads.",
        "email_sent": "Email sent.",
        "draft_created": "Draft created.",
        "labels": "{count} labels.",
        "no_files": "No files found.",
        "files_header": "Files ({count}):",
        "folder_created": "Folder created: {name}",
        "calendars": "{count} calendars.",
        "slack_sent": "Slack message sent.",
        "slack_users": "{count} Slack users.",
        "briefing": "Daily briefing for {date}: {connected} of {total} services connected.",
        "done": "Action completed successfully.",
    },
    "ko": {
        "no_events": "예정된 일정이 없습니다.",
        "events_header": "일정 ({count}개):",
        "all_day": "종일",
        "event_created": "일정이 생성되었습니다: {title} ({time})",
        "time_tbd": "시간 미정",
        "new_event": "새 일정",
        "no_title": "제목 없음",
        "no_messages": "이메일이 없습니다.",
        "message_count": "{count}개의 메시지를 찾았습니다.",
        "thread_count": "{count}개의 스레드를 찾았습니다.",
        "email_sent": "이메일을 보냈습니다.",
        "draft_created": "임시보관함에 저장했습니다.",
        "labels": "라벨 {count}개.",
        "no_files": "파일이 없습니다.",
        "files_header": "파일 ({count}개):",
        "folder_created": "폴더가 생성되었습니다: {name}",
        "calendars": "캘린더 {count}개.",
        "slack_sent": "Slack 메시지를 보냈습니다.",
        "slack_users": "Slack 사용자 {count}명.",
        "briefing": "{date} 데일리 브리핑: {total}개 서비스 중 {connected}개 연결됨.",
        "done": "작업이 완료되었습니다.",
    },
}


def _list(data: Any, key: str) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return [item for item in data[key] if isinstance(item, dict)]
    return []


class SummaryFormatter:
    """Formats normalized data using one locale's string table."""

    def __init__(self, locale: str = DEFAULT_LOCALE, tz_name: str = "Asia/Seoul"):
        if locale not in STRINGS:
            logger.debug(f"Unknown locale '{locale}', falling back to {DEFAULT_LOCALE}")
            locale = DEFAULT_LOCALE
        self.locale = locale
        self.strings = STRINGS[locale]
        self.tz = ZoneInfo(tz_name)

    def t(self, key: str, **kwargs: Any) -> str:
        return self.strings[key].format(**kwargs)

    def _time(self, start: Any) -> str:
        if not isinstance(start, dict):
            return self.t("time_tbd")
        if start.get("dateTime"):
            try:
                instant = datetime.fromisoformat(str(start["dateTime"]).replace("Z", "+00:00"))
            except ValueError:
                return str(start["dateTime"])
            if instant.tzinfo is not None:
                instant = instant.astimezone(self.tz)
            return instant.strftime("%Y-%m-%d %H:%M")
        if start.get("date"):
            return f"{start['date']} {self.t('all_day')}"
        return self.t("time_tbd")

    def calendar(self, action: str, data: Any) -> str:
        if action in ("list_events", "get_today_events"):
            events = _list(data, "items")
            if not events:
                return self.t("no_events")
            lines = [self.t("events_header", count=len(events))]
            for index, event in enumerate(events, 1):
                title = event.get("summary") or self.t("no_title")
                location = f" @ {event['location']}" if event.get("location") else ""
                lines.append(f"{index}. {title} ({self._time(event.get('start'))}){location}")
            return "\n".join(lines)
        if action in ("create_event", "quick_add"):
            event = data if isinstance(data, dict) else {}
            return self.t(
                "event_created",
                title=event.get("summary") or self.t("new_event"),
                time=self._time(event.get("start")),
            )
        if action == "list_calendars":
            return self.t("calendars", count=len(_list(data, "items")))
        return self.t("done")

    def gmail(self, action: str, data: Any) -> str:
        if action in ("list_messages", "search_messages"):
            messages = _list(data, "messages")
            return self.t("message_count", count=len(messages)) if messages else self.t("no_messages")
        if action == "list_threads":
            threads = _list(data, "threads")
            return self.t("thread_count", count=len(threads)) if threads else self.t("no_messages")
        if action in ("send_email", "send_message"):
            return self.t("email_sent")
        if action == "create_draft":
            return self.t("draft_created")
        if action == "list_labels":
            return self.t("labels", count=len(_list(data, "labels")))
        return self.t("done")

    def drive(self, action: str, data: Any) -> str:
        if action in ("list_files", "search_files"):
            files = _list(data, "files")
            if not files:
                return self.t("no_files")
            lines = [self.t("files_header", count=len(files))]
            lines.extend(f"- {f.get('name') or f.get('id')}" for f in files[:10])
            return "\n".join(lines)
        if action == "create_folder":
            name = data.get("name") if isinstance(data, dict) else None
            return self.t("folder_created", name=name or "")
        return self.t("done")

    def slack(self, action: str, data: Any) -> str:
        if action == "send_message":
            return self.t("slack_sent")
        if action == "list_users":
            return self.t("slack_users", count=len(_list(data, "members")))
        return self.t("done")

    def briefing(self, action: str, data: Any) -> str:
        services = data.get("services", {}) if isinstance(data, dict) else {}
        return self.t(
            "briefing",
            date=data.get("date", "") if isinstance(data, dict) else "",
            connected=sum(1 for v in services.values() if v),
            total=len(services),
        )

    def __call__(self, integration_id: str, action: str, data: Any) -> Optional[str]:
        handler = {
            "googlecalendar": self.calendar,
            "gmail": self.gmail,
            "googledrive": self.drive,
            "slack": self.slack,
            "briefing": self.briefing,
        }.get(integration_id)
        if handler is None:
            return self.t("done")
        return handler(action, data)


def make_summarizer(locale: str = DEFAULT_LOCALE, tz_name: str = "Asia/Seoul") -> Summarizer:
    """Build a summarizer for ``locale`` (falls back to English)."""
    return SummaryFormatter(locale, tz_name)
