"""Status broker models."""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel


class StatusResult(BaseModel):
    """Answer to "is this user connected to this integration?"."""

    ok: bool = True
    connected: bool = False
    account: Optional[str] = None
    error: Optional[str] = None


class DisconnectResult(BaseModel):
    """Outcome of a disconnect request."""

    ok: bool
    message: Optional[str] = None
    error: Optional[str] = None


class AuthUrlResult(BaseModel):
    """Outcome of an OAuth authorization URL lookup."""

    ok: bool
    auth_url: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CachedStatus:
    """A probe outcome remembered for ``ttl`` seconds."""

    connected: bool
    account: Optional[str]
    captured_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now < self.captured_at + self.ttl

    def to_result(self) -> StatusResult:
        return StatusResult(ok=True, connected=self.connected, account=self.account)


@dataclass(frozen=True)
class DisconnectOverride:
    """Forces "disconnected" for a pair until it expires."""

    integration_id: str
    user_identity: str
    set_at: float
    ttl: float

    def is_live(self, now: float) -> bool:
        return now < self.set_at + self.ttl
