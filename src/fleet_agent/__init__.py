"""
Fleet Agent - coordinated fleet of learning worker agents for a block world.

This package provides:
- A supervisor that keeps one process per agent alive
- Per-agent tabular Q-learning with global / role / individual tables
- Shared knowledge of recipes, structures and resource locations
- Help requests between agents with timeout fallbacks
- An activity watchdog per agent
"""

__version__ = "0.1.0"

from .agent import AgentConfig, AgentRuntime, Role
from .learning import QLearner, LearningConfig
from .knowledge import KnowledgeStore, QTableStore
from .supervisor import Supervisor, SupervisorConfig, load_roster

__all__ = [
    "AgentConfig",
    "AgentRuntime",
    "Role",
    "QLearner",
    "LearningConfig",
    "KnowledgeStore",
    "QTableStore",
    "Supervisor",
    "SupervisorConfig",
    "load_roster",
]
