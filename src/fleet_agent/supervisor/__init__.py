"""
Fleet supervision.

This package provides:
- Roster loading from JSON or YAML
- Agent process spawning with delayed, unbounded respawn
- keepAlive broadcast and help request relay
"""

from .config import SupervisorConfig
from .roster import load_roster
from .supervisor import Supervisor, AgentProcessHandle

__all__ = [
    "SupervisorConfig",
    "load_roster",
    "Supervisor",
    "AgentProcessHandle",
]
