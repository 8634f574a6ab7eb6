"""Configuration and environment handling for the integration hub."""

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

DEFAULT_GATEWAY_BASE_URL = "https://console.interactor.com/api/v1"


def parse_connector_names(raw: Optional[str]) -> Dict[str, str]:
    """Parse an ``id=connector,id=connector`` override table.

    Blank entries and entries without ``=`` are ignored.
    """
    overrides: Dict[str, str] = {}
    if not raw:
        return overrides
    for entry in raw.split(","):
        if "=" not in entry:
            continue
        key, _, value = entry.partition("=")
        key, value = key.strip().lower(), value.strip()
        if key and value:
            overrides[key] = value
    return overrides


def _env_float(name: str, default: float, issues: List[str]) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        issues.append(f"{name} is not a number: {raw!r}")
        return default


def _env_int(name: str, default: int, issues: List[str]) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        issues.append(f"{name} is not an integer: {raw!r}")
        return default


class GatewayConfig:
    """Gateway connection settings."""

    def __init__(self, issues: List[str]):
        self.base_url: str = os.getenv("IH_GATEWAY_BASE_URL", DEFAULT_GATEWAY_BASE_URL).rstrip("/")
        self.api_key: str = os.getenv("IH_GATEWAY_API_KEY", "")
        self.connector_names: Dict[str, str] = parse_connector_names(
            os.getenv("IH_CONNECTOR_NAMES")
        )
        self.probe_timeout_s: float = _env_float("IH_PROBE_TIMEOUT_S", 8.0, issues)
        self.dispatch_timeout_s: float = _env_float("IH_DISPATCH_TIMEOUT_S", 30.0, issues)


class Config:
    """Central configuration object."""

    def __init__(self):
        # Load .env file if it exists
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        self.project_root = Path(__file__).parent.parent.parent
        self._issues: List[str] = []

        self.gateway = GatewayConfig(self._issues)

        # Status cache
        self.status_cache_ttl_s: float = _env_float("IH_STATUS_CACHE_TTL_S", 60.0, self._issues)
        self.disconnect_override_ttl_s: float = _env_float(
            "IH_DISCONNECT_OVERRIDE_TTL_S", 3600.0, self._issues
        )

        # Retry
        self.retry_attempts: int = _env_int("IH_RETRY_ATTEMPTS", 3, self._issues)
        self.retry_initial_delay_s: float = _env_float(
            "IH_RETRY_INITIAL_DELAY_S", 1.0, self._issues
        )

        # User directory
        self.users_path: Path = Path(os.getenv("IH_USERS_PATH", "data/users.json"))
        if not self.users_path.is_absolute():
            self.users_path = self.project_root / self.users_path

        # Presentation
        self.timezone: str = os.getenv("IH_TIMEZONE", "Asia/Seoul")
        self.locale: str = os.getenv("IH_LOCALE", "en")

        # Logging
        self.log_level: str = os.getenv("IH_LOG_LEVEL", "INFO")

    def validate(self) -> List[str]:
        """Return a list of configuration issues (empty when healthy)."""
        issues = list(self._issues)
        if not self.gateway.api_key:
            issues.append("IH_GATEWAY_API_KEY is not set; every integration will report disconnected")
        if self.retry_attempts < 1:
            issues.append("IH_RETRY_ATTEMPTS must be at least 1")
        if self.status_cache_ttl_s <= 0:
            issues.append("IH_STATUS_CACHE_TTL_S must be positive")
        return issues


# Global config instance
config = Config()
