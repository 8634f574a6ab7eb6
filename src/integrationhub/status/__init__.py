"""Connection status broker."""

from .broker import StatusBroker, extract_auth_url, is_plausible_account
from .models import (
    AuthUrlResult,
    CachedStatus,
    DisconnectOverride,
    DisconnectResult,
    StatusResult,
)

__all__ = [
    "StatusBroker",
    "StatusResult",
    "DisconnectResult",
    "AuthUrlResult",
    "CachedStatus",
    "DisconnectOverride",
    "extract_auth_url",
    "is_plausible_account",
]
