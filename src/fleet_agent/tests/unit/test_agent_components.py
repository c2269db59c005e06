"""
Unit tests for agent configuration, the busy guard and the activity watchdog.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ...agent import (
    ActivityWatchdog,
    AgentConfig,
    AgentRuntimeConfig,
    BusyGuard,
    GuardState,
    Role,
    StoragePaths,
)
from ...errors import AgentBusyError
from ...supervisor import SupervisorConfig

pytestmark = pytest.mark.unit


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRoleAndConfig:
    """Test suite for roles and agent configuration."""

    @pytest.mark.parametrize("value,role", [
        ("Miner", Role.MINER),
        ("builder", Role.BUILDER),
        (" EXPLORER ", Role.EXPLORER),
        ("Default", Role.DEFAULT),
    ])
    def test_parse_role(self, value, role):
        assert Role.parse(value) is role

    def test_unknown_role_falls_back(self, caplog):
        assert Role.parse("Farmer") is Role.DEFAULT
        assert "Unknown role" in caplog.text

    def test_default_actions(self):
        assert Role.MINER.default_action == "dig"
        assert Role.BUILDER.default_action == "placeBlock"
        assert Role.EXPLORER.default_action == "explore"
        assert Role.DEFAULT.default_action == "gather"

    def test_agent_config_round_trip(self):
        config = AgentConfig(name="MapSniffer", role=Role.EXPLORER, port=25566)
        assert AgentConfig.from_dict(config.to_dict()) == config

    def test_agent_config_is_immutable(self):
        config = AgentConfig(name="A")
        with pytest.raises(AttributeError):
            config.name = "B"

    @pytest.mark.parametrize("kwargs", [{"name": ""}, {"name": "A", "port": 0}, {"name": "A", "port": 70000}])
    def test_agent_config_validation(self, kwargs):
        with pytest.raises(ValueError):
            AgentConfig(**kwargs)

    def test_storage_paths(self):
        paths = StoragePaths.for_agent("data", AgentConfig(name="BrickWhiz", role=Role.BUILDER))

        assert paths.individual_table == Path("data/individual/BrickWhiz_qtable.json")
        assert paths.role_table == Path("data/shared/builder_qtable.json")
        assert paths.global_table == Path("data/shared/mainQTable.json")
        assert paths.knowledge_base == Path("data/shared/knowledgeBase.json")

    def test_runtime_config_defaults(self, monkeypatch):
        monkeypatch.delenv("FLEET_DECISION_INTERVAL", raising=False)
        monkeypatch.setenv("FLEET_HELP_WAIT", "12")

        config = AgentRuntimeConfig()

        assert config.decision_interval == 5.0
        assert config.watchdog_tick == 1.0
        assert config.help_wait == 12.0
        assert config.path_timeout_ms == 10000

    def test_runtime_config_validation(self):
        with pytest.raises(ValueError):
            AgentRuntimeConfig(decision_interval=0)


class TestFixedTimings:
    """Test suite for the documented timing defaults."""

    @pytest.fixture
    def clean_env(self, monkeypatch):
        for name in ("FLEET_RESPAWN_DELAY", "FLEET_KEEPALIVE_INTERVAL", "FLEET_DECISION_INTERVAL",
                     "FLEET_MERGE_INTERVAL", "FLEET_HEARTBEAT_INTERVAL", "FLEET_IDLE_THRESHOLD",
                     "FLEET_HELP_WAIT", "FLEET_PATH_TIMEOUT_MS"):
            monkeypatch.delenv(name, raising=False)

    def test_supervisor_defaults(self, clean_env):
        config = SupervisorConfig()

        assert config.respawn_delay == 10.0
        assert config.keepalive_interval == 5.0

    def test_agent_runtime_defaults(self, clean_env):
        config = AgentRuntimeConfig()

        assert config.help_wait == 30.0
        assert config.idle_threshold == 10.0
        assert config.watchdog_tick == 1.0
        assert config.decision_interval == 5.0
        assert config.merge_interval == 300.0
        assert config.heartbeat_interval == 60.0
        assert config.path_timeout_ms == 10000
        assert config.search_distance == 64.0


class TestBusyGuard:
    """Test suite for BusyGuard."""

    def test_acquire_and_release(self, busy_guard):
        assert busy_guard.try_acquire("gather") is True
        assert busy_guard.is_busy
        assert busy_guard.owner == "gather"
        assert busy_guard.try_acquire("explore") is False

        busy_guard.release()
        assert busy_guard.state is GuardState.IDLE
        assert busy_guard.owner is None

    def test_hold_releases_on_error(self, busy_guard):
        with pytest.raises(RuntimeError):
            with busy_guard.hold("build"):
                assert busy_guard.is_busy
                raise RuntimeError("boom")

        assert not busy_guard.is_busy

    def test_hold_rejects_overlap(self, busy_guard):
        with busy_guard.hold("build"):
            with pytest.raises(AgentBusyError):
                with busy_guard.hold("gather"):
                    pass
            assert busy_guard.owner == "build"


class TestActivityWatchdog:
    """Test suite for ActivityWatchdog."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.mark.asyncio
    async def test_triggers_after_threshold(self, busy_guard, clock):
        on_idle = AsyncMock()
        watchdog = ActivityWatchdog(busy_guard, on_idle, idle_threshold=10.0, clock=clock)

        clock.now += 10.0
        assert await watchdog.check() is False

        clock.now += 0.5
        assert await watchdog.check() is True
        on_idle.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_trigger_resets_timer(self, busy_guard, clock):
        on_idle = AsyncMock()
        watchdog = ActivityWatchdog(busy_guard, on_idle, idle_threshold=10.0, clock=clock)

        clock.now += 11
        await watchdog.check()
        await watchdog.check()

        assert on_idle.await_count == 1
        assert watchdog.triggers == 1

    @pytest.mark.asyncio
    async def test_no_trigger_while_busy(self, busy_guard, clock):
        on_idle = AsyncMock()
        watchdog = ActivityWatchdog(busy_guard, on_idle, idle_threshold=10.0, clock=clock)
        busy_guard.try_acquire("dig")

        clock.now += 30
        assert await watchdog.check() is False
        on_idle.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_activity_postpones_trigger(self, busy_guard, clock):
        watchdog = ActivityWatchdog(busy_guard, AsyncMock(), idle_threshold=10.0, clock=clock)

        clock.now += 8
        watchdog.touch("dig")
        clock.now += 8

        assert await watchdog.check() is False
        assert watchdog.last_activity_kind == "dig"

    def test_unrelated_events_do_not_count(self, busy_guard, clock):
        watchdog = ActivityWatchdog(busy_guard, AsyncMock(), clock=clock)
        clock.now += 5

        watchdog.touch("weather")

        assert watchdog.idle_for() == 5
