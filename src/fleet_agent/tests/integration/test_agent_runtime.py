"""
Integration tests for the agent runtime.

Runs a full agent on the simulated world with a real supervisor pipe and
short timings: startup merge, decision cycles with persistence, help
requests, assist handling and both shutdown paths.
"""

import asyncio
import multiprocessing
from unittest.mock import AsyncMock

import pytest

from ...agent import AgentRuntime, StoragePaths
from ...coordination import FleetMessage, HelpType, MessageType, channel_pair
from ...knowledge import QTableStore
from ...learning import LearningConfig
from ...world import Position
from ..fixtures.documents import make_world

pytestmark = pytest.mark.integration


@pytest.fixture
def supervisor_end_and_runtime(agent_config, runtime_config):
    """Build a runtime on a given world; returns (supervisor channel, runtime)."""
    created = []

    def build(world, learning_config=None):
        supervisor_end, agent_end = channel_pair(multiprocessing.get_context("spawn"), "supervisor", agent_config.name)
        runtime = AgentRuntime(
            agent_config,
            agent_end,
            world=world,
            runtime_config=runtime_config,
            learning_config=learning_config or LearningConfig(exploration_rate=0.0, seed=5),
        )
        created.append((supervisor_end, runtime))
        return supervisor_end, runtime

    yield build

    for supervisor_end, runtime in created:
        supervisor_end.close()
        runtime.channel.close()


@pytest.fixture
def paths(agent_config, runtime_config):
    return StoragePaths.for_agent(runtime_config.data_dir, agent_config)


class TestStartup:
    """Test suite for agent startup."""

    @pytest.mark.asyncio
    async def test_startup_merge(self, supervisor_end_and_runtime, paths):
        store = QTableStore()
        store.save(paths.global_table, {"idle": {"gather": 1.0}})
        store.save(paths.role_table, {"idle": {"gather": 2.0}})
        store.save(paths.individual_table, {"idle": {"gather": 5.0}})
        _, runtime = supervisor_end_and_runtime(make_world())

        await runtime.start()

        assert runtime.world.is_connected
        assert runtime.learner.table["idle"]["gather"] == pytest.approx(2.6)

        persisted = store.load(paths.individual_table)
        assert persisted["idle"]["gather"] == pytest.approx(2.6)
        assert {"state_idle", "state_mining", "state_building"} <= set(persisted)

        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_fresh_start_with_empty_tables(self, supervisor_end_and_runtime, paths):
        _, runtime = supervisor_end_and_runtime(make_world())

        await runtime.start()

        assert set(runtime.learner.table) == {"state_idle", "state_mining", "state_building"}
        assert paths.individual_table.exists()
        await runtime.shutdown()


class TestDecisionCycle:
    """Test suite for decision cycles."""

    @pytest.mark.asyncio
    async def test_decision_learns_and_persists(self, supervisor_end_and_runtime, paths):
        _, runtime = supervisor_end_and_runtime(make_world({Position(2, 64, 0): "stone"},
                                                           inventory={"wooden_pickaxe": 1}))
        await runtime.start()
        runtime.learner.table["lowResources"] = {"gather": 0.0, "explore": 0.0}

        action = await runtime.decision_step()

        assert action == "gather"
        assert runtime.world.inventory["cobblestone"] == 1
        assert runtime.learner.table["lowResources"]["gather"] == pytest.approx(1.0)
        assert QTableStore().load(paths.individual_table)["lowResources"]["gather"] == pytest.approx(1.0)

        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_failed_action_is_punished(self, supervisor_end_and_runtime):
        _, runtime = supervisor_end_and_runtime(make_world())
        await runtime.start()
        runtime.learner.table["lowResources"] = {"dig": 0.0}

        await runtime.decision_step()

        assert runtime.learner.table["lowResources"]["dig"] == pytest.approx(-1.0)
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_table_write_failure_is_logged(self, supervisor_end_and_runtime, paths, caplog):
        paths.individual_table.mkdir(parents=True)
        _, runtime = supervisor_end_and_runtime(make_world())

        await runtime.start()
        action = await runtime.decision_step()

        assert action in ("explore", "gather", "idle")
        assert runtime.learner.stats["updates"] == 1
        assert "Failed to save Q-table for TestMiner" in caplog.text
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_unknown_state_seeded_on_first_decision(self, supervisor_end_and_runtime):
        _, runtime = supervisor_end_and_runtime(make_world())
        await runtime.start()

        action = await runtime.decision_step()

        assert action in ("explore", "gather", "idle")
        assert set(runtime.learner.table["lowResources"]) == {"explore", "gather", "idle"}
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_default_task_follows_role(self, supervisor_end_and_runtime):
        _, runtime = supervisor_end_and_runtime(make_world())
        runtime.tasks.execute = AsyncMock(return_value=True)

        await runtime.run_default_task()

        runtime.tasks.execute.assert_awaited_once_with("dig")


class TestCoordination:
    """Test suite for help requests and assists."""

    @pytest.mark.asyncio
    async def test_help_request_then_fallback(self, supervisor_end_and_runtime):
        """Nobody helps; after the wait the agent gathers the resource itself."""
        supervisor_end, runtime = supervisor_end_and_runtime(
            make_world({Position(4, 64, 0): "iron_ore"}, inventory={"wooden_pickaxe": 1}))
        await runtime.start()

        runtime.schedule_help_request(HelpType.RESOURCE_GATHER, {"resource": "iron_ore"})
        await asyncio.sleep(0.01)

        request = supervisor_end.receive_all()
        assert [m.message_type for m in request] == [MessageType.REQUEST_HELP]
        assert request[0].sender == "TestMiner"
        assert Position(4, 64, 0) in runtime.world.blocks

        await asyncio.sleep(0.2)

        assert runtime.world.inventory["iron_ore"] == 1
        assert runtime.help.stats["fallbacks"] == 1
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_assist_message_runs_one_dig(self, supervisor_end_and_runtime):
        _, runtime = supervisor_end_and_runtime(
            make_world({Position(4, 64, 0): "iron_ore", Position(5, 64, 0): "iron_ore"},
                       inventory={"wooden_pickaxe": 1}))
        await runtime.start()

        runtime.handle_message(FleetMessage.assist(HelpType.RESOURCE_GATHER, {"resource": "iron_ore"}))
        await asyncio.sleep(0.05)

        assert runtime.world.inventory["iron_ore"] == 1
        assert runtime.dispatcher.stats["assists"] == 1
        await runtime.shutdown()


@pytest.mark.slow
class TestRun:
    """Test suite for the full run loop."""

    @pytest.mark.asyncio
    async def test_graceful_stop(self, supervisor_end_and_runtime, paths):
        supervisor_end, runtime = supervisor_end_and_runtime(make_world())

        async def stop_soon():
            await asyncio.sleep(0.2)
            supervisor_end.send(FleetMessage.keep_alive())
            await asyncio.sleep(0.05)
            runtime.stop()

        code, _ = await asyncio.gather(runtime.run(install_signal_handlers=False), stop_soon())

        assert code == 0
        assert not runtime.world.is_connected
        assert runtime.learner.stats["updates"] >= 1
        assert paths.individual_table.exists()

    @pytest.mark.asyncio
    async def test_supervisor_gone_stops_agent(self, supervisor_end_and_runtime):
        supervisor_end, runtime = supervisor_end_and_runtime(make_world())

        async def drop_channel():
            await asyncio.sleep(0.1)
            supervisor_end.close()

        code, _ = await asyncio.gather(runtime.run(install_signal_handlers=False), drop_channel())

        assert code == 0

    @pytest.mark.asyncio
    async def test_unhandled_error_flushes_and_exits_1(self, supervisor_end_and_runtime, paths):
        _, runtime = supervisor_end_and_runtime(make_world())
        runtime.tasks.execute = AsyncMock(side_effect=RuntimeError("boom"))

        code = await runtime.run(install_signal_handlers=False)

        assert code == 1
        assert paths.individual_table.exists()
        assert "lowResources" in QTableStore().load(paths.individual_table)
