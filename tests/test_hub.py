"""Tests for build_hub wiring."""

from conftest import USERS, SleepRecorder
from integrationhub.commands.users import InMemoryUserDirectory
from integrationhub.config import Config
from integrationhub.connectors import StubGateway
from integrationhub.hub import build_hub


def make_hub(monkeypatch, **env):
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    return build_hub(
        Config(), gateway=StubGateway(), users=InMemoryUserDirectory(USERS), sleep=SleepRecorder()
    )


class TestBuildHub:
    """Tests for build_hub."""

    def test_retry_settings_come_from_config(self, monkeypatch):
        """Attempt cap and first delay live on the shared RetryExecutor."""
        hub = make_hub(monkeypatch, IH_RETRY_ATTEMPTS="5", IH_RETRY_INITIAL_DELAY_S="0.25")
        assert hub.retry.max_attempts == 5
        assert hub.retry.initial_delay == 0.25
        assert hub.router.retry is hub.retry
        assert hub.broker.retry is hub.retry

    def test_timeouts_come_from_config(self, monkeypatch):
        """Probe and dispatch policies carry the configured timeouts."""
        hub = make_hub(monkeypatch, IH_PROBE_TIMEOUT_S="3", IH_DISPATCH_TIMEOUT_S="12")
        assert hub.broker.probe_policy.timeout == 3.0
        assert hub.router.dispatch_policy.timeout == 12.0

    def test_connector_overrides(self, monkeypatch):
        """IH_CONNECTOR_NAMES overrides reach the registry."""
        hub = make_hub(monkeypatch, IH_CONNECTOR_NAMES="gmail=gmail-v9")
        assert hub.registry.require("gmail").backend_connector_name == "gmail-v9"
