"""User identity resolution.

The command pipeline only needs one thing from the user store: map the
caller's ``user_id`` to a record carrying the email used as the upstream
account.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class UserRecord(BaseModel):
    """A known user. ``password_hash`` in the backing file is never loaded."""

    id: Union[int, str]
    email: str
    created_at: Optional[str] = None
    last_login: Optional[str] = None


@runtime_checkable
class UserDirectory(Protocol):
    """Resolves a caller-supplied user id to a record."""

    async def resolve(self, user_id: str) -> Optional[UserRecord]:
        ...


def matches(record: UserRecord, user_id: str) -> bool:
    """Match by id string, case-insensitive email, or integer id."""
    needle = user_id.strip()
    if not needle:
        return False
    if str(record.id) == needle:
        return True
    if record.email.lower() == needle.lower():
        return True
    try:
        return isinstance(record.id, int) and record.id == int(needle, 10)
    except ValueError:
        return False


class InMemoryUserDirectory:
    """Directory over a fixed list of records."""

    def __init__(self, records: Iterable[Union[UserRecord, dict]] = ()):
        self._records: List[UserRecord] = [
            r if isinstance(r, UserRecord) else UserRecord.model_validate(r) for r in records
        ]

    async def resolve(self, user_id: str) -> Optional[UserRecord]:
        return next((r for r in self._records if matches(r, user_id)), None)


class JsonFileUserDirectory:
    """Directory backed by a ``{"users": [...]}`` JSON file.

    The file is re-read on every lookup so edits are picked up without a
    restart. A missing or malformed file resolves every id to ``None``.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> List[UserRecord]:
        try:
            payload: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning(f"User directory file not found: {self.path}")
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read user directory {self.path}: {e}")
            return []

        entries = payload.get("users", []) if isinstance(payload, dict) else []
        records = []
        for entry in entries if isinstance(entries, list) else []:
            try:
                records.append(UserRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed user entry in {self.path}: {e.error_count()} errors")
        return records

    async def resolve(self, user_id: str) -> Optional[UserRecord]:
        records = await asyncio.to_thread(self._load)
        return next((r for r in records if matches(r, user_id)), None)
