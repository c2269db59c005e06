"""
Help-request / assist protocol.

Requester side: send a request, wait a fixed window, then fall back to
doing the work itself if it is still idle. The requester never learns
whether help arrived.

Assisting side: run exactly one bounded task for each assist instruction
and report nothing back.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .channel import MessageChannel
from .messages import FleetMessage, MessageType

logger = logging.getLogger(__name__)

HelpHandler = Callable[[Dict[str, Any]], Awaitable[Any]]

DEFAULT_HELP_WAIT = 30.0


class HelpRequester:
    """
    Sends help requests to the supervisor and runs timeout fallbacks.

    Each request is independent: REQUESTED -> (wait window) -> FALLBACK,
    where the fallback only runs if the busy guard is idle when the
    window closes.
    """

    def __init__(self,
                 agent_name: str,
                 channel: MessageChannel,
                 busy_guard,
                 wait_seconds: float = DEFAULT_HELP_WAIT):
        self.agent_name = agent_name
        self.channel = channel
        self.busy_guard = busy_guard
        self.wait_seconds = wait_seconds
        self._fallbacks: Dict[str, HelpHandler] = {}

        self.stats = {
            "requests": 0,
            "fallbacks": 0,
            "skipped_busy": 0,
        }

    def register_fallback(self, help_type: str, handler: HelpHandler) -> None:
        """Set what to do when nobody helped with `help_type`"""
        self._fallbacks[help_type] = handler

    async def request_help(self, help_type: str, details: Dict[str, Any]) -> bool:
        """
        Ask the fleet for help and wait out the window.

        Args:
            help_type: Kind of help, e.g. resource_gather
            details: Free-form request details

        Returns:
            True if the fallback ran
        """
        self.stats["requests"] += 1
        self.channel.send(FleetMessage.request_help(self.agent_name, help_type, details))
        logger.info(f"Requested help: {help_type} with details: {details}")

        await asyncio.sleep(self.wait_seconds)

        if self.busy_guard.is_busy:
            self.stats["skipped_busy"] += 1
            logger.debug(f"Busy when {help_type} wait window closed, no fallback")
            return False

        handler = self._fallbacks.get(help_type)
        if handler is None:
            logger.warning(f"No help received for {help_type} and no fallback registered")
            return False

        logger.warning(f"No help received for {help_type}. Proceeding with fallback behavior.")
        self.stats["fallbacks"] += 1
        await handler(details)
        return True


class AssistDispatcher:
    """Runs one bounded assist task per incoming assist instruction"""

    def __init__(self):
        self._handlers: Dict[str, HelpHandler] = {}
        self.stats = {
            "assists": 0,
            "ignored": 0,
        }

    def register(self, help_type: str, handler: HelpHandler) -> None:
        self._handlers[help_type] = handler

    async def handle(self, message: FleetMessage) -> Optional[Any]:
        """Carry out an assist instruction; the outcome is never reported"""
        if message.message_type != MessageType.ASSIST:
            raise ValueError(f"Not an assist message: {message.message_type.value}")

        handler = self._handlers.get(message.help_type)
        if handler is None:
            self.stats["ignored"] += 1
            logger.warning(f"No assist handler for help type {message.help_type!r}")
            return None

        self.stats["assists"] += 1
        logger.info(f"Assisting with {message.help_type}: {message.details}")
        return await handler(message.details)
