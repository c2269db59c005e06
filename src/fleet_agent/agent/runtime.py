"""
Agent runtime: one agent process on one asyncio event loop.

The runtime wires the decision engine, knowledge store, role tasks,
watchdog and coordination channel together and drives them with a set of
periodic loops until a termination signal arrives.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import numpy as np

from ..coordination.channel import MessageChannel
from ..coordination.help_protocol import AssistDispatcher, HelpRequester
from ..coordination.messages import FleetMessage, HelpType, MessageType
from ..errors import PersistenceError
from ..knowledge.knowledge_base import KnowledgeStore
from ..knowledge.qtable_store import QTableStore
from ..learning.q_learner import LearningConfig, QLearner
from ..learning.states import derive_state
from ..log_setup import setup_logging
from ..world import WorldAgent, create_world
from .busy_guard import BusyGuard
from .config import AgentConfig, AgentRuntimeConfig, StoragePaths
from .tasks import ANY_VALUABLE_ORE, VALUABLE_ORES, RoleTasks
from .watchdog import ActivityWatchdog

logger = logging.getLogger(__name__)


class AgentRuntime:
    """
    Runs one agent until stopped.

    Loops:
    - decision: derive state, choose and execute an action, learn, persist
    - watchdog: force the role's default task on a stalled agent
    - heartbeat: periodic liveness chat
    - merge: periodic three-tier table merge
    - messages: keepAlive and assist instructions from the supervisor
    """

    def __init__(self,
                 agent_config: AgentConfig,
                 channel: MessageChannel,
                 world: Optional[WorldAgent] = None,
                 runtime_config: Optional[AgentRuntimeConfig] = None,
                 learning_config: Optional[LearningConfig] = None):
        self.agent_config = agent_config
        self.channel = channel
        self.config = runtime_config or AgentRuntimeConfig()
        self.paths = StoragePaths.for_agent(self.config.data_dir, agent_config)

        self.world = world or create_world()
        self.table_store = QTableStore()
        self.knowledge = KnowledgeStore(self.paths.knowledge_base)
        self.learner = QLearner(learning_config)
        self.busy_guard = BusyGuard()

        self.help = HelpRequester(agent_config.name, channel, self.busy_guard, self.config.help_wait)
        self.tasks = RoleTasks(
            self.world,
            self.knowledge,
            self.busy_guard,
            config=self.config,
            request_help=self.schedule_help_request,
            rng=np.random.default_rng(self.learner.config.seed),
        )
        self.dispatcher = AssistDispatcher()
        self.watchdog = ActivityWatchdog(
            self.busy_guard,
            on_idle=self.run_default_task,
            idle_threshold=self.config.idle_threshold,
            tick=self.config.watchdog_tick,
        )

        self.help.register_fallback(HelpType.RESOURCE_GATHER, self._gather_fallback)
        self.dispatcher.register(HelpType.RESOURCE_GATHER, self.tasks.assist_resource_gather)
        self.dispatcher.register(HelpType.BUILD_ASSIST, self.tasks.assist_build)

        self.world.add_activity_listener(self.watchdog.touch)
        self.world.add_listener("disconnected", self._on_disconnected)
        self.world.add_listener("error", self._on_world_error)

        self._loops: List[asyncio.Task] = []
        self._background: Set[asyncio.Task] = set()
        self._stop_event: Optional[asyncio.Event] = None
        self._fatal: Optional[BaseException] = None
        self.exit_code: Optional[int] = None

    @property
    def name(self) -> str:
        return self.agent_config.name

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load state, run the startup merge and join the world"""
        logger.info(f"Starting agent {self.name} ({self.agent_config.role.value})")

        self.knowledge.load()
        self.merge_tables(reload_knowledge=False)

        await self.world.connect(self.agent_config.host, self.agent_config.port, self.name)
        self.watchdog.touch("action")
        logger.info(f"{self.name} has spawned in the world")

    def merge_tables(self, reload_knowledge: bool = True) -> None:
        """Blend global, role and individual tables into the individual table"""
        if reload_knowledge:
            self.knowledge.load()

        snapshot = self.table_store.load_tiers(
            self.paths.global_table,
            self.paths.role_table,
            self.paths.individual_table,
        )
        # Before the first merge the on-disk individual table is the baseline
        if self.learner.stats["merges"] == 0:
            self.learner.table = snapshot.individual_table

        self.learner.merge_from(snapshot.global_table, snapshot.role_table)
        self.flush_table()

    def flush_table(self) -> bool:
        """Persist the individual table; a failed write is logged and retried on the next flush"""
        try:
            self.table_store.save(self.paths.individual_table, self.learner.table)
            return True
        except PersistenceError as e:
            logger.error(f"Failed to save Q-table for {self.name}: {e}")
            return False

    def stop(self) -> None:
        """Request a graceful stop; safe to call from a signal handler via the loop"""
        if self._stop_event is not None and not self._stop_event.is_set():
            logger.info(f"Stopping agent {self.name}")
            self._stop_event.set()

    async def shutdown(self) -> None:
        """Flush the individual table and leave the world"""
        await self._cancel_all()
        if self.flush_table():
            logger.info(f"Q-table saved for {self.name}")
        await self.world.disconnect()

    def emergency_flush(self) -> None:
        if self.flush_table():
            logger.info(f"Emergency flush of Q-table for {self.name} completed")

    async def run(self, install_signal_handlers: bool = True) -> int:
        """
        Run until a termination signal or an unhandled error.

        Args:
            install_signal_handlers: Route SIGINT/SIGTERM to a graceful stop

        Returns:
            Process exit code: 0 after a graceful stop, 1 after an error
        """
        self._stop_event = asyncio.Event()
        if install_signal_handlers:
            self._setup_signal_handlers()

        try:
            await self.start()
            self._loops = [
                asyncio.create_task(self._decision_loop(), name="decision"),
                asyncio.create_task(self.watchdog.run(), name="watchdog"),
                asyncio.create_task(self._heartbeat_loop(), name="heartbeat"),
                asyncio.create_task(self._merge_loop(), name="merge"),
                asyncio.create_task(self._message_loop(), name="messages"),
            ]
            stop_waiter = asyncio.create_task(self._stop_event.wait())

            done, _ = await asyncio.wait(self._loops + [stop_waiter], return_when=asyncio.FIRST_COMPLETED)
            stop_waiter.cancel()
            for task in done:
                if task is not stop_waiter and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
            if self._fatal is not None:
                raise self._fatal

            await self.shutdown()
            self.exit_code = 0

        except Exception as e:
            logger.error(f"Unhandled error in agent {self.name}: {e}", exc_info=True)
            await self._cancel_all()
            self.emergency_flush()
            self.exit_code = 1

        finally:
            self.channel.close()

        return self.exit_code

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down gracefully...")
            loop.call_soon_threadsafe(self.stop)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def _cancel_all(self) -> None:
        tasks = [t for t in self._loops + list(self._background) if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._loops = []
        self._background.clear()

    # --- Decision cycle ---

    async def decision_step(self) -> Optional[str]:
        """
        One decision cycle.

        Returns:
            The action taken, or None if the state offered no action
        """
        state = derive_state(self.tasks.observe())
        action = self.learner.choose_action(state)
        if action is None:
            logger.warning(f"No action available for state {state.value}")
            return None

        logger.info(f"Decided action: {action}")
        self.watchdog.touch("action")
        success = await self.tasks.execute(action)

        next_state = derive_state(self.tasks.observe())
        self.learner.update(state, action, self.learner.reward_for(success), next_state)
        self.flush_table()
        return action

    async def run_default_task(self) -> bool:
        """Watchdog callback: perform the role's default task"""
        action = self.agent_config.role.default_action
        logger.info(f"Performing default task for {self.agent_config.role.value}: {action}")
        return await self.tasks.execute(action)

    async def _decision_loop(self) -> None:
        while True:
            await self.decision_step()
            await asyncio.sleep(self.config.decision_interval)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval)
            await self.tasks.heartbeat()

    async def _merge_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.merge_interval)
            logger.info("Merging Q-tables (periodic)")
            self.merge_tables()

    # --- Coordination ---

    async def _message_loop(self) -> None:
        while not self.channel.closed:
            for message in self.channel.receive_all():
                self.handle_message(message)
            await asyncio.sleep(self.config.message_poll_interval)
        logger.warning(f"Supervisor channel closed for {self.name}")
        self.stop()

    def handle_message(self, message: FleetMessage) -> None:
        if message.message_type == MessageType.KEEP_ALIVE:
            logger.debug("Received keepAlive")
        elif message.message_type == MessageType.ASSIST:
            self._spawn_background(self.dispatcher.handle(message), f"assist-{message.help_type}")
        else:
            logger.warning(f"Unexpected {message.message_type.value} message from {message.sender}")

    def schedule_help_request(self, help_type: str, details: Dict[str, Any]) -> None:
        """Run a help request alongside the agent's other work"""
        self._spawn_background(self.help.request_help(help_type, details), f"help-{help_type}")

    async def _gather_fallback(self, details: Dict[str, Any]) -> bool:
        resource = details.get("resource")
        if resource == ANY_VALUABLE_ORE:
            return await self.tasks.gather(VALUABLE_ORES)
        if resource:
            return await self.tasks.gather((resource,))
        return await self.tasks.gather()

    def _spawn_background(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        # Unhandled failures end the agent through the emergency path
        logger.error(f"Background task {task.get_name()} failed: {task.exception()}")
        self._fatal = task.exception()
        self.stop()

    # --- World events ---

    def _on_disconnected(self, reason: Any = None) -> None:
        logger.warning(f"{self.name} was disconnected from the world: {reason}")

    def _on_world_error(self, error: Any = None) -> None:
        logger.error(f"World error for {self.name}: {error}")


def run_agent_process(config_data: Dict[str, Any],
                      connection,
                      data_dir: Union[str, Path],
                      log_dir: Optional[Union[str, Path]] = None,
                      verbose: bool = False) -> None:
    """
    Entry point of a spawned agent process.

    Args:
        config_data: AgentConfig.to_dict() of the agent to run
        connection: Child end of the supervisor pipe
        data_dir: Root directory of the table and knowledge files
        log_dir: Directory for the per-agent log file
        verbose: Enable debug logging
    """
    config = AgentConfig.from_dict(config_data)
    log_file = Path(log_dir) / f"{config.name}.log" if log_dir else None
    setup_logging(log_file, verbose)

    runtime = AgentRuntime(
        config,
        MessageChannel(connection, config.name),
        runtime_config=AgentRuntimeConfig(data_dir=str(data_dir)),
    )
    sys.exit(asyncio.run(runtime.run()))
