"""
Message types exchanged between the supervisor and agent processes.

Messaging is fire-and-forget: there are no acknowledgments and no
correlation identifiers, so a message carries only its kind, its sender
and an optional payload.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(Enum):
    """Kinds of supervisor <-> agent messages"""
    KEEP_ALIVE = "keepAlive"        # supervisor -> agent, no payload
    REQUEST_HELP = "requestHelp"    # agent -> supervisor
    ASSIST = "assist"               # supervisor -> agent


class HelpType:
    """Known help request kinds"""
    RESOURCE_GATHER = "resource_gather"
    BUILD_ASSIST = "build_assist"


@dataclass
class FleetMessage:
    """A single message on a supervisor <-> agent channel"""
    message_type: MessageType
    sender: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def help_type(self) -> Optional[str]:
        return self.data.get("helpType")

    @property
    def details(self) -> Dict[str, Any]:
        return self.data.get("details") or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to a plain dict for the wire"""
        return {
            "type": self.message_type.value,
            "sender": self.sender,
            "data": self.data,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FleetMessage":
        """Create message from its wire dict"""
        return cls(
            message_type=MessageType(data["type"]),
            sender=data.get("sender", ""),
            data=data.get("data") or {},
            timestamp=data.get("timestamp", time.time()),
        )

    # Constructors for the three message kinds

    @classmethod
    def keep_alive(cls, sender: str = "supervisor") -> "FleetMessage":
        return cls(MessageType.KEEP_ALIVE, sender)

    @classmethod
    def request_help(cls, sender: str, help_type: str, details: Dict[str, Any]) -> "FleetMessage":
        return cls(MessageType.REQUEST_HELP, sender, {"helpType": help_type, "details": details})

    @classmethod
    def assist(cls, help_type: str, details: Dict[str, Any], sender: str = "supervisor") -> "FleetMessage":
        return cls(MessageType.ASSIST, sender, {"helpType": help_type, "details": details})
