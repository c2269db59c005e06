"""
World-agent interface consumed by the fleet.

The fleet never talks to the block world directly. Movement, block
interaction and crafting are provided by a world agent that satisfies
this contract; the agent runtime only depends on the methods below.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """Coordinates in the world"""
    x: float
    y: float
    z: float

    def offset(self, dx: float, dy: float, dz: float) -> "Position":
        return Position(self.x + dx, self.y + dy, self.z + dz)

    def distance_to(self, other: "Position") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(data["x"], data["y"], data["z"])


@dataclass(frozen=True)
class Block:
    """A block descriptor returned by find_block"""
    name: str
    position: Position


@dataclass
class InventoryItem:
    """A stack of items held by the agent"""
    name: str
    count: int


# Lifecycle event names a world agent reports
WORLD_EVENTS = ("spawned", "disconnected", "error")


class WorldAgent(ABC):
    """
    Capability provider for one agent in the shared world.

    Implementations must:
    - Raise PathTimeoutError when goto exceeds its timeout
    - Raise WorldInteractionError for any other failed operation
    - Report lifecycle events through the registered listeners
    """

    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., None]]] = {name: [] for name in WORLD_EVENTS}
        self._activity_listeners: List[Callable[[str], None]] = []

    # Lifecycle

    @abstractmethod
    async def connect(self, host: str, port: int, identity: str) -> None:
        """Join the world as `identity`; emits `spawned` once ready."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Leave the world."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        ...

    # Movement and block interaction

    @property
    @abstractmethod
    def position(self) -> Position:
        ...

    @abstractmethod
    async def goto(self, target: Position, timeout_ms: int = 10000) -> None:
        """Travel to `target`; raises PathTimeoutError after timeout_ms."""

    @abstractmethod
    def find_block(self,
                   predicate: Callable[[Block], bool],
                   max_distance: float = 64,
                   count: int = 1) -> List[Block]:
        """Return up to `count` blocks matching `predicate`, nearest first."""

    @abstractmethod
    def block_at(self, position: Position) -> Optional[Block]:
        ...

    @abstractmethod
    async def dig(self, block: Block) -> None:
        ...

    @abstractmethod
    async def place_block(self, reference: Block, face: Position) -> None:
        ...

    # Items

    @abstractmethod
    async def equip(self, item: InventoryItem, slot: str = "hand") -> None:
        ...

    @abstractmethod
    async def craft(self, recipe: str, quantity: int = 1, station: Optional[Block] = None) -> None:
        ...

    def needs_station(self, item_name: str) -> bool:
        """Whether crafting `item_name` requires a crafting table"""
        return False

    @abstractmethod
    def inventory_items(self) -> List[InventoryItem]:
        ...

    @abstractmethod
    async def chat(self, text: str) -> None:
        ...

    # Listener registration

    def add_listener(self, event: str, callback: Callable[..., None]) -> None:
        """Register a callback for a lifecycle event (spawned, disconnected, error)"""
        if event not in self._listeners:
            raise ValueError(f"Unknown world event: {event}")
        self._listeners[event].append(callback)

    def add_activity_listener(self, callback: Callable[[str], None]) -> None:
        """Register a callback fired on movement, digging, building and crafting"""
        self._activity_listeners.append(callback)

    def find_inventory_item(self, name_fragment: str) -> Optional[InventoryItem]:
        """First inventory stack whose name contains `name_fragment`"""
        for item in self.inventory_items():
            if name_fragment in item.name:
                return item
        return None

    def _emit(self, event: str, *args) -> None:
        for callback in self._listeners.get(event, []):
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"Error in {event} listener: {e}")

    def _emit_activity(self, kind: str) -> None:
        for callback in self._activity_listeners:
            try:
                callback(kind)
            except Exception as e:
                logger.error(f"Error in activity listener: {e}")
