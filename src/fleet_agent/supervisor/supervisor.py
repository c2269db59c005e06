"""
Fleet supervisor.

Starts one process per roster entry, keeps them alive (every exit is
followed by a delayed respawn), sends periodic keepAlive messages and
relays help requests between agents.
"""

import asyncio
import logging
import multiprocessing
import signal
import time
from dataclasses import dataclass, field
from multiprocessing.connection import Connection
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import psutil

from ..agent.config import AgentConfig, Role, StoragePaths
from ..agent.runtime import run_agent_process
from ..coordination.channel import MessageChannel
from ..coordination.messages import FleetMessage, MessageType
from ..errors import PersistenceError, ProcessError
from ..knowledge.knowledge_base import KnowledgeStore
from ..knowledge.qtable_store import QTableStore
from ..learning.table_merge import seed_individual_table
from .config import SupervisorConfig
from .roster import load_roster

logger = logging.getLogger(__name__)

# (agent config, child end of the pipe) -> started process
ProcessFactory = Callable[[AgentConfig, Connection], Any]


@dataclass
class AgentProcessHandle:
    """A running agent process as seen by the supervisor"""
    config: AgentConfig
    process: Any
    channel: MessageChannel
    restart_count: int = 0
    started_at: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def role(self) -> Role:
        return self.config.role

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.is_alive()


class Supervisor:
    """
    Manages the lifecycle of every agent process in the fleet.

    Features:
    - One process and one duplex channel per agent
    - Unconditional respawn after a fixed delay, with restart counters
    - Periodic keepAlive broadcast
    - Help request relay to the first other registered agent
    - Shared state bootstrap and per-agent status reporting
    """

    def __init__(self,
                 config: Optional[SupervisorConfig] = None,
                 roster: Optional[List[AgentConfig]] = None,
                 process_factory: Optional[ProcessFactory] = None,
                 context=None):
        self.config = config or SupervisorConfig()
        self.context = context or multiprocessing.get_context("spawn")
        self._process_factory = process_factory or self._start_agent_process

        self.roster: List[AgentConfig] = []
        self._configs: Dict[str, AgentConfig] = {}
        self.handles: Dict[str, AgentProcessHandle] = {}
        self._restart_counts: Dict[str, int] = {}
        self._pending_respawns: Dict[str, asyncio.TimerHandle] = {}

        self._shutting_down = False
        self._stop_event: Optional[asyncio.Event] = None

        self.stats = {
            "spawns": 0,
            "exits": 0,
            "respawns": 0,
            "keepalives": 0,
            "help_requests": 0,
            "help_relayed": 0,
            "help_unserved": 0,
        }

        if roster is not None:
            self.set_roster(roster)

    # --- Roster ---

    def set_roster(self, roster: List[AgentConfig]) -> None:
        self.roster = list(roster)
        self._configs = {config.name: config for config in self.roster}

    def load_roster(self) -> List[AgentConfig]:
        self.set_roster(load_roster(self.config.roster_path))
        return self.roster

    # --- Process lifecycle ---

    def _start_agent_process(self, config: AgentConfig, connection: Connection):
        process = self.context.Process(
            target=run_agent_process,
            args=(config.to_dict(), connection, self.config.data_dir, self.config.log_dir, self.config.verbose),
            name=f"agent-{config.name}",
        )
        process.start()
        return process

    def spawn(self, config: AgentConfig) -> Optional[AgentProcessHandle]:
        """
        Start an agent process and register its handle.

        Returns:
            The new handle, or None if the process could not be started
        """
        existing = self.handles.get(config.name)
        if existing is not None and existing.is_alive():
            logger.warning(f"Agent {config.name} is already running (pid {existing.pid})")
            return existing

        self._configs.setdefault(config.name, config)
        parent_conn, child_conn = self.context.Pipe(duplex=True)
        try:
            process = self._process_factory(config, child_conn)
        except (OSError, RuntimeError) as e:
            logger.error(f"Failed to start agent: {ProcessError(f'{config.name}: {e}')}")
            parent_conn.close()
            self._schedule_respawn(config.name)
            return None

        handle = AgentProcessHandle(
            config=config,
            process=process,
            channel=MessageChannel(parent_conn, f"supervisor->{config.name}"),
            restart_count=self._restart_counts.get(config.name, 0),
        )
        self.handles[config.name] = handle
        self.stats["spawns"] += 1
        logger.info(f"Started agent {config.name} ({config.role.value}), pid {handle.pid}")
        return handle

    def check_processes(self) -> List[str]:
        """Detect exited agent processes. Returns the names that exited."""
        exited = []
        for name, handle in list(self.handles.items()):
            if not handle.is_alive():
                self.on_exit(name, handle.process.exitcode)
                exited.append(name)
        return exited

    def on_exit(self, name: str, code: Optional[int]) -> None:
        """Unregister an exited agent and schedule its respawn"""
        handle = self.handles.pop(name, None)
        if handle is not None:
            handle.channel.close()
        self.stats["exits"] += 1
        logger.info(f"[{name}] process exited with code {code}")

        if self._shutting_down:
            return
        self._schedule_respawn(name)

    def _schedule_respawn(self, name: str) -> None:
        if self._shutting_down or name in self._pending_respawns:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"No event loop to schedule the respawn of {name}")
            return

        logger.info(f"Respawning {name} in {self.config.respawn_delay:.1f}s")
        self._pending_respawns[name] = loop.call_later(self.config.respawn_delay, self._respawn, name)

    def _respawn(self, name: str) -> None:
        self._pending_respawns.pop(name, None)
        if self._shutting_down or name in self.handles:
            return

        config = self._configs.get(name)
        if config is None:
            logger.warning(f"Cannot respawn {name}: not in the roster")
            return

        self._restart_counts[name] = self._restart_counts.get(name, 0) + 1
        self.stats["respawns"] += 1
        logger.info(f"Reconnecting agent: {name} (restart #{self._restart_counts[name]})")
        self.spawn(config)

    def reconcile(self) -> List[str]:
        """Spawn every roster entry that has neither a live handle nor a pending respawn"""
        started = []
        for name, config in self._configs.items():
            if name in self.handles or name in self._pending_respawns:
                continue
            if self.spawn(config) is not None:
                started.append(name)
        return started

    # --- Messaging ---

    def broadcast_keepalive(self) -> int:
        """Send keepAlive to every agent. Returns how many sends succeeded."""
        sent = 0
        for handle in list(self.handles.values()):
            if handle.channel.send(FleetMessage.keep_alive()):
                sent += 1
        self.stats["keepalives"] += 1
        return sent

    def poll_messages(self) -> int:
        """Drain every agent channel in roster order"""
        count = 0
        for name in list(self._configs):
            handle = self.handles.get(name)
            if handle is None:
                continue
            for message in handle.channel.receive_all():
                self.handle_message(name, message)
                count += 1
        return count

    def handle_message(self, name: str, message: FleetMessage) -> None:
        if message.message_type == MessageType.REQUEST_HELP:
            self.relay_help(name, message.help_type, message.details)
        else:
            logger.warning(f"Unexpected {message.message_type.value} message from {name}")

    def relay_help(self, requester: str, help_type: str, details: Dict[str, Any]) -> Optional[str]:
        """
        Forward a help request as an assist instruction.

        The first agent in roster order that is registered, is not the
        requester and is not busy receives it. Nothing is sent back to the
        requester either way.

        Returns:
            Name of the agent asked to assist, or None
        """
        self.stats["help_requests"] += 1
        logger.info(f"Received help request from {requester}: {help_type}")

        for name in self._configs:
            if name == requester or name not in self.handles:
                continue
            if self.is_agent_busy(name):
                continue

            if self.handles[name].channel.send(FleetMessage.assist(help_type, details)):
                self.stats["help_relayed"] += 1
                logger.info(f"Relayed {help_type} from {requester} to {name}")
                return name

        self.stats["help_unserved"] += 1
        logger.warning(f"No available agent to help {requester} with {help_type}")
        return None

    def is_agent_busy(self, name: str) -> bool:
        """
        Whether an agent is busy.

        Agents do not report their busy flag to the supervisor, so this
        always answers False and help goes to the first other agent.
        """
        return False

    # --- Shared state and status ---

    def initialize_shared_state(self) -> None:
        """
        Create missing shared documents and seed new agents' individual tables.

        Write failures are logged; agents then start from empty defaults.
        """
        data_dir = Path(self.config.data_dir)
        store = QTableStore()

        try:
            KnowledgeStore(data_dir / "shared" / "knowledgeBase.json").ensure_exists()
        except PersistenceError as e:
            logger.error(f"Failed to initialize knowledge base: {e}")

        for config in self._configs.values():
            paths = StoragePaths.for_agent(data_dir, config)
            try:
                if not paths.global_table.exists():
                    store.save(paths.global_table, {})
                    logger.info(f"Initialized global Q-table at {paths.global_table}")

                if paths.individual_table.exists():
                    continue
                table = seed_individual_table(store.load(paths.global_table), store.load(paths.role_table))
                store.save(paths.individual_table, table)
                logger.info(f"Seeded Q-table for {config.name} with {len(table)} states")
            except PersistenceError as e:
                logger.error(f"Failed to initialize Q-tables for {config.name}: {e}")

    def fleet_status(self) -> Dict[str, Dict[str, Any]]:
        """Per-agent process status, including resident memory when available"""
        status = {}
        now = time.time()
        for name, config in self._configs.items():
            handle = self.handles.get(name)
            entry: Dict[str, Any] = {
                "role": config.role.value,
                "restart_count": self._restart_counts.get(name, 0),
                "respawn_pending": name in self._pending_respawns,
                "alive": False,
                "pid": None,
            }
            if handle is not None:
                entry.update({
                    "pid": handle.pid,
                    "alive": handle.is_alive(),
                    "uptime": now - handle.started_at,
                })
                if handle.pid is not None:
                    try:
                        entry["memory_mb"] = psutil.Process(handle.pid).memory_info().rss / 1024 / 1024
                    except (psutil.NoSuchProcess, psutil.AccessDenied):
                        pass
            status[name] = entry
        return status

    # --- Shutdown ---

    def shutdown(self) -> None:
        """Terminate every agent, waiting for their flush-then-exit before killing"""
        self._shutting_down = True
        for timer in self._pending_respawns.values():
            timer.cancel()
        self._pending_respawns.clear()

        handles = list(self.handles.values())
        logger.info(f"Shutting down {len(handles)} agents")
        for handle in handles:
            if handle.is_alive():
                handle.process.terminate()

        deadline = time.monotonic() + self.config.shutdown_timeout
        for handle in handles:
            handle.process.join(timeout=max(0.0, deadline - time.monotonic()))
            if handle.is_alive():
                logger.warning(f"Agent {handle.name} did not exit in time, killing it")
                handle.process.kill()
                handle.process.join(timeout=1.0)
            handle.channel.close()

        self.handles.clear()

    def stop(self) -> None:
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down gracefully...")
            loop.call_soon_threadsafe(self.stop)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def _keepalive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.keepalive_interval)
            self.broadcast_keepalive()

    async def run(self, install_signal_handlers: bool = True) -> None:
        """Supervise the fleet until stopped"""
        self._stop_event = asyncio.Event()
        self._shutting_down = False
        if install_signal_handlers:
            self._setup_signal_handlers()

        if not self.roster:
            self.load_roster()
        if not self.roster:
            logger.error("Empty roster, nothing to supervise")
            return

        self.initialize_shared_state()
        self.reconcile()
        keepalive = asyncio.create_task(self._keepalive_loop(), name="keepalive")

        try:
            while not self._stop_event.is_set():
                self.poll_messages()
                self.check_processes()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            keepalive.cancel()
            await asyncio.gather(keepalive, return_exceptions=True)
            self.shutdown()
            logger.info(f"Supervisor stopped: {self.stats}")
