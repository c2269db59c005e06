"""
Configuration for agent processes.

Identity (name, role, connection parameters) is fixed per agent; runtime
timings come from environment variables so spawned processes and local
runs can be tuned without code changes.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

logger = logging.getLogger(__name__)


class Role(Enum):
    """Behavioral category shaping an agent's task priorities"""
    MINER = "Miner"
    BUILDER = "Builder"
    EXPLORER = "Explorer"
    DEFAULT = "Default"

    @classmethod
    def parse(cls, value: Union[str, "Role", None]) -> "Role":
        """Case-insensitive lookup; unknown roles fall back to DEFAULT"""
        if isinstance(value, Role):
            return value
        for role in cls:
            if value and role.value.lower() == str(value).strip().lower():
                return role
        logger.warning(f"Unknown role {value!r}, using {cls.DEFAULT.value}")
        return cls.DEFAULT

    @property
    def default_action(self) -> str:
        """Task the watchdog forces when the agent stalls"""
        return ROLE_DEFAULT_ACTIONS[self]


ROLE_DEFAULT_ACTIONS = {
    Role.MINER: "dig",
    Role.BUILDER: "placeBlock",
    Role.EXPLORER: "explore",
    Role.DEFAULT: "gather",
}


@dataclass(frozen=True)
class AgentConfig:
    """Identity and connection parameters of one agent"""
    name: str
    role: Role = Role.DEFAULT
    host: str = "127.0.0.1"
    port: int = 25565
    version: str = "1.20.6"

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise ValueError("Agent name must not be empty")
        if not 0 < int(self.port) < 65536:
            raise ValueError(f"Invalid port for {self.name}: {self.port}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            "host": self.host,
            "port": self.port,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        return cls(
            name=data["name"],
            role=Role.parse(data.get("role")),
            host=data.get("host", "127.0.0.1"),
            port=int(data.get("port", 25565)),
            version=data.get("version", "1.20.6"),
        )


@dataclass(frozen=True)
class StoragePaths:
    """Where an agent's tables and the shared documents live"""
    data_dir: Path
    agent_name: str
    role: Role

    @property
    def individual_table(self) -> Path:
        return self.data_dir / "individual" / f"{self.agent_name}_qtable.json"

    @property
    def role_table(self) -> Path:
        return self.data_dir / "shared" / f"{self.role.value.lower()}_qtable.json"

    @property
    def global_table(self) -> Path:
        return self.data_dir / "shared" / "mainQTable.json"

    @property
    def knowledge_base(self) -> Path:
        return self.data_dir / "shared" / "knowledgeBase.json"

    @classmethod
    def for_agent(cls, data_dir: Union[str, Path], config: AgentConfig) -> "StoragePaths":
        return cls(Path(data_dir), config.name, config.role)


@dataclass
class AgentRuntimeConfig:
    """Timings for the agent runtime (seconds)"""

    decision_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_DECISION_INTERVAL', '5')))
    merge_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_MERGE_INTERVAL', '300')))
    heartbeat_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_HEARTBEAT_INTERVAL', '60')))
    message_poll_interval: float = field(default_factory=lambda: float(os.getenv('FLEET_MESSAGE_POLL', '0.1')))

    # Watchdog
    watchdog_tick: float = 1.0
    idle_threshold: float = field(default_factory=lambda: float(os.getenv('FLEET_IDLE_THRESHOLD', '10')))

    # Coordination and world timeouts
    help_wait: float = field(default_factory=lambda: float(os.getenv('FLEET_HELP_WAIT', '30')))
    path_timeout_ms: int = field(default_factory=lambda: int(os.getenv('FLEET_PATH_TIMEOUT_MS', '10000')))
    search_distance: float = 64.0

    data_dir: str = field(default_factory=lambda: os.getenv('FLEET_DATA_DIR', 'fleet_data'))

    def validate(self):
        """Validate configuration"""
        for name in ("decision_interval", "merge_interval", "heartbeat_interval",
                     "message_poll_interval", "watchdog_tick", "idle_threshold"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")

        if self.help_wait < 0:
            raise ValueError(f"help_wait must be >= 0, got {self.help_wait}")

        if self.path_timeout_ms < 1:
            raise ValueError(f"path_timeout_ms must be >= 1, got {self.path_timeout_ms}")

    def __post_init__(self):
        """Post-initialization validation"""
        self.validate()
