"""
Typed message channel over one end of a multiprocessing pipe.

Sends never block on a reply and never raise: a dead peer is logged and
the message is dropped.
"""

import logging
from multiprocessing.connection import Connection
from typing import List, Optional, Tuple

from .messages import FleetMessage

logger = logging.getLogger(__name__)


class MessageChannel:
    """One side of a supervisor <-> agent pipe"""

    def __init__(self, connection: Connection, name: str = "channel"):
        self.connection = connection
        self.name = name
        self.closed = False

        self.stats = {
            "messages_sent": 0,
            "messages_received": 0,
            "messages_dropped": 0,
        }

    def send(self, message: FleetMessage) -> bool:
        """
        Send a message without waiting for any response.

        Returns:
            True if the message was handed to the pipe
        """
        if self.closed:
            self.stats["messages_dropped"] += 1
            return False

        try:
            self.connection.send(message.to_dict())
        except (OSError, ValueError) as e:
            # BrokenPipeError / closed handle: the peer is gone
            logger.warning(f"[{self.name}] dropped {message.message_type.value}: {e}")
            self.stats["messages_dropped"] += 1
            return False

        self.stats["messages_sent"] += 1
        return True

    def receive_all(self, max_items: int = 100) -> List[FleetMessage]:
        """Drain pending messages without blocking, in arrival order"""
        messages = []
        while len(messages) < max_items and not self.closed:
            try:
                if not self.connection.poll():
                    break
                raw = self.connection.recv()
            except (EOFError, OSError):
                logger.debug(f"[{self.name}] peer closed the channel")
                self.closed = True
                break

            message = self._decode(raw)
            if message is not None:
                messages.append(message)
        return messages

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.connection.close()
        except OSError:
            pass

    def _decode(self, raw) -> Optional[FleetMessage]:
        try:
            message = FleetMessage.from_dict(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[{self.name}] skipping malformed message {raw!r}: {e}")
            self.stats["messages_dropped"] += 1
            return None

        self.stats["messages_received"] += 1
        return message


def channel_pair(context, left_name: str, right_name: str) -> Tuple[MessageChannel, MessageChannel]:
    """Create a duplex pipe from a multiprocessing context and wrap both ends"""
    left, right = context.Pipe(duplex=True)
    return MessageChannel(left, left_name), MessageChannel(right, right_name)
