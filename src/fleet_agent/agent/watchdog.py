"""
Activity watchdog.

Every tick, checks whether the agent has done anything recently. An agent
that has been quiet for longer than the idle threshold while not busy is
pushed into its default task.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .busy_guard import BusyGuard

logger = logging.getLogger(__name__)

# Events that count as activity
ACTIVITY_KINDS = frozenset({"action", "chat", "move", "dig", "build", "craft"})


class ActivityWatchdog:
    """Forces the default task on an agent that has stalled"""

    def __init__(self,
                 busy_guard: BusyGuard,
                 on_idle: Callable[[], Awaitable[object]],
                 idle_threshold: float = 10.0,
                 tick: float = 1.0,
                 clock: Callable[[], float] = time.monotonic):
        self.busy_guard = busy_guard
        self.on_idle = on_idle
        self.idle_threshold = idle_threshold
        self.tick = tick
        self._clock = clock

        self.last_activity = clock()
        self.last_activity_kind: Optional[str] = None
        self.triggers = 0

    def touch(self, kind: str = "action") -> None:
        """Record a qualifying activity event"""
        if kind not in ACTIVITY_KINDS:
            return
        self.last_activity = self._clock()
        self.last_activity_kind = kind

    def idle_for(self) -> float:
        return self._clock() - self.last_activity

    def should_trigger(self) -> bool:
        return self.idle_for() > self.idle_threshold and not self.busy_guard.is_busy

    async def check(self) -> bool:
        """
        Run one watchdog tick.

        Returns:
            True if the default task was forced
        """
        if not self.should_trigger():
            return False

        logger.info(f"Agent has been idle for more than {self.idle_threshold:.0f} seconds. Initiating activity.")
        self.triggers += 1
        self.touch("action")
        await self.on_idle()
        return True

    async def run(self) -> None:
        """Tick forever; cancelled by the runtime on shutdown"""
        while True:
            await asyncio.sleep(self.tick)
            await self.check()
