"""
Cooperative busy flag for an agent's multi-step tasks.

The agent runs on a single event loop, so a check-and-set here cannot be
interleaved. The guard is advisory across suspension points only: it stops
a new task from being *started* while another one runs, it never
interrupts one already in flight.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from ..errors import AgentBusyError

logger = logging.getLogger(__name__)


class GuardState(Enum):
    IDLE = "idle"
    EXECUTING = "executing"


class BusyGuard:
    """Two-state (IDLE / EXECUTING) guard owned by one agent"""

    def __init__(self):
        self.state = GuardState.IDLE
        self.owner: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self.state is GuardState.EXECUTING

    def try_acquire(self, owner: str = "task") -> bool:
        """Enter EXECUTING if idle. Returns False when already executing."""
        if self.state is GuardState.EXECUTING:
            return False
        self.state = GuardState.EXECUTING
        self.owner = owner
        return True

    def release(self) -> None:
        self.state = GuardState.IDLE
        self.owner = None

    @contextmanager
    def hold(self, owner: str = "task") -> Iterator["BusyGuard"]:
        """
        Run a block in EXECUTING state, releasing on every exit path.

        Raises:
            AgentBusyError: another task is already executing
        """
        if not self.try_acquire(owner):
            raise AgentBusyError(f"Cannot start {owner}: {self.owner} is executing")
        try:
            yield self
        finally:
            self.release()
