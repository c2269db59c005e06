"""
Agent process components.

This package provides:
- Agent identity, storage layout and runtime configuration
- The advisory busy guard for multi-step tasks
- The activity watchdog
- Role tasks behind decision-engine actions
- The asyncio runtime that drives one agent process
"""

from .config import Role, AgentConfig, StoragePaths, AgentRuntimeConfig, ROLE_DEFAULT_ACTIONS
from .busy_guard import BusyGuard, GuardState
from .watchdog import ActivityWatchdog, ACTIVITY_KINDS
from .tasks import RoleTasks
from .runtime import AgentRuntime, run_agent_process

__all__ = [
    "Role",
    "AgentConfig",
    "StoragePaths",
    "AgentRuntimeConfig",
    "ROLE_DEFAULT_ACTIONS",
    "BusyGuard",
    "GuardState",
    "ActivityWatchdog",
    "ACTIVITY_KINDS",
    "RoleTasks",
    "AgentRuntime",
    "run_agent_process",
]
