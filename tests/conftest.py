"""Test configuration and fixtures."""

import logging
from typing import List

import pytest

from integrationhub.commands.router import CommandRouter
from integrationhub.commands.users import InMemoryUserDirectory
from integrationhub.connectors import RetryExecutor, StubGateway
from integrationhub.integrations import ActionMap, ConnectionRegistry
from integrationhub.status import StatusBroker

USER_EMAIL = "alice@example.com"

USERS = [
    {"id": 1, "email": USER_EMAIL, "created_at": "2024-01-01T00:00:00Z"},
    {"id": "u1", "email": "bob@example.com"},
]

# Probe responses proving a live credential, per integration
CONNECTED_PROBES = {
    "googlecalendar": ("googlecalendar-v1", "calendar.calendarList.list",
                       {"output": {"body": {"items": [{"id": USER_EMAIL, "primary": True}]}}}),
    "gmail": ("gmail-v1", "gmail.users.getProfile",
              {"output": {"body": {"emailAddress": USER_EMAIL}}}),
    "googledrive": ("googledrive-v1", "drive.about.get",
                    {"output": {"body": {"user": {"emailAddress": USER_EMAIL}}}}),
    "slack": ("slack-v1", "auth.test", {"ok": True, "user_id": "U1", "user": "alice"}),
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async sleep stand-in that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def connect(stub: StubGateway, *integration_ids: str) -> None:
    """Make probes for the given integrations report connected."""
    for integration_id in integration_ids:
        connector, action, data = CONNECTED_PROBES[integration_id]
        stub.set_json(connector, action, data)


@pytest.fixture(autouse=True)
def _quiet_package_logger():
    """Keep handlers installed by CLI tests from leaking between tests."""
    yield
    logger = logging.getLogger("integrationhub")
    for handler in logger.handlers[:]:
        if getattr(handler, "_integrationhub", False):
            logger.removeHandler(handler)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def stub() -> StubGateway:
    return StubGateway()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry.default()


@pytest.fixture
def retry(sleeper) -> RetryExecutor:
    return RetryExecutor(max_attempts=3, initial_delay=1.0, sleep=sleeper)


@pytest.fixture
def broker(registry, stub, retry, clock) -> StatusBroker:
    return StatusBroker(registry, stub, retry, clock=clock)


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(USERS)


@pytest.fixture
def router(broker, registry, stub, retry, users) -> CommandRouter:
    return CommandRouter(broker, registry, ActionMap(), stub, retry, users)
