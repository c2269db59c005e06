"""
Coordination between agents and the supervisor.

This package provides:
- Typed fire-and-forget messages (keepAlive, requestHelp, assist)
- A non-blocking channel over multiprocessing pipes
- The help-request / assist protocol with timeout fallback
"""

from .messages import FleetMessage, MessageType, HelpType
from .channel import MessageChannel, channel_pair
from .help_protocol import HelpRequester, AssistDispatcher, DEFAULT_HELP_WAIT

__all__ = [
    "FleetMessage",
    "MessageType",
    "HelpType",
    "MessageChannel",
    "channel_pair",
    "HelpRequester",
    "AssistDispatcher",
    "DEFAULT_HELP_WAIT",
]
