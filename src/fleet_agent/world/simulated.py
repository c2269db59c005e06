"""
Simulated world agent for running the fleet without a world server.

This module provides an in-memory block world that satisfies the
WorldAgent contract, so agents can be exercised end to end (demos,
tests, local fleets) when no real world agent is plugged in.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import numpy as np

from ..errors import PathTimeoutError, WorldInteractionError
from .interface import Block, InventoryItem, Position, WorldAgent

logger = logging.getLogger(__name__)


# item -> (ingredients, yield, needs crafting table)
RECIPE_BOOK: Dict[str, tuple] = {
    "oak_planks": ({"oak_log": 1}, 4, False),
    "stick": ({"oak_planks": 2}, 4, False),
    "crafting_table": ({"oak_planks": 4}, 1, False),
    "wooden_pickaxe": ({"oak_planks": 3, "stick": 2}, 1, True),
    "stone_pickaxe": ({"cobblestone": 3, "stick": 2}, 1, True),
    "furnace": ({"cobblestone": 8}, 1, True),
}

# block name -> item dropped when dug
BLOCK_DROPS: Dict[str, str] = {
    "stone": "cobblestone",
    "grass": "dirt",
}

DEFAULT_BLOCK_MIX: Dict[str, float] = {
    "stone": 0.30,
    "oak_log": 0.25,
    "birch_log": 0.10,
    "coal_ore": 0.12,
    "iron_ore": 0.10,
    "dirt": 0.08,
    "gold_ore": 0.03,
    "diamond_ore": 0.02,
}


@dataclass
class SimulatedWorldConfig:
    """Configuration for the simulated world"""
    seed: Optional[int] = None
    world_radius: int = 80
    n_blocks: int = 400
    block_mix: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BLOCK_MIX))
    travel_speed: float = 20.0   # blocks per simulated second
    time_scale: float = 0.05     # real seconds per simulated second
    reach: float = 6.0           # max dig / place distance after travelling
    starting_inventory: Dict[str, int] = field(default_factory=dict)


class SimulatedWorld(WorldAgent):
    """
    In-memory world agent.

    Provides:
    - Random resource layout around the origin
    - Travel with path-finding timeouts
    - Digging with item drops, block placement and crafting
    - Activity notifications for the watchdog
    """

    def __init__(self, config: Optional[SimulatedWorldConfig] = None):
        super().__init__()
        self.config = config or SimulatedWorldConfig()
        self._rng = np.random.default_rng(self.config.seed)

        self.blocks: Dict[Position, str] = {}
        self.inventory: Dict[str, int] = dict(self.config.starting_inventory)
        self.equipped: Optional[str] = None
        self.identity: Optional[str] = None
        self._position = Position(0, 64, 0)
        self._connected = False

        self._generate_blocks()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def position(self) -> Position:
        return self._position

    async def connect(self, host: str, port: int, identity: str) -> None:
        """Simulate joining the world"""
        await asyncio.sleep(0.01)
        self.identity = identity
        self._connected = True
        logger.info(f"{identity} joined simulated world ({host}:{port}), {len(self.blocks)} blocks")
        self._emit("spawned")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info(f"{self.identity} left simulated world")
        self._emit("disconnected", "client quit")

    async def goto(self, target: Position, timeout_ms: int = 10000) -> None:
        self._require_connection()

        travel_time = self._position.distance_to(target) / self.config.travel_speed
        if travel_time * 1000 > timeout_ms:
            await asyncio.sleep(timeout_ms / 1000 * self.config.time_scale)
            raise PathTimeoutError(f"Path to {target} timed out after {timeout_ms}ms")

        await asyncio.sleep(travel_time * self.config.time_scale)
        self._position = target
        self._emit_activity("move")

    def find_block(self,
                   predicate: Callable[[Block], bool],
                   max_distance: float = 64,
                   count: int = 1) -> List[Block]:
        matches = []
        for pos, name in self.blocks.items():
            block = Block(name, pos)
            distance = self._position.distance_to(pos)
            if distance <= max_distance and predicate(block):
                matches.append((distance, block))

        matches.sort(key=lambda m: m[0])
        return [block for _, block in matches[:count]]

    def block_at(self, position: Position) -> Optional[Block]:
        return Block(self.blocks.get(position, "air"), position)

    async def dig(self, block: Block) -> None:
        self._require_connection()
        if self.blocks.get(block.position) != block.name:
            raise WorldInteractionError(f"No {block.name} at {block.position}")
        if self._position.distance_to(block.position) > self.config.reach:
            raise WorldInteractionError(f"{block.name} at {block.position} is out of reach")

        await asyncio.sleep(0.5 * self.config.time_scale)
        del self.blocks[block.position]
        drop = BLOCK_DROPS.get(block.name, block.name)
        self.inventory[drop] = self.inventory.get(drop, 0) + 1
        self._emit_activity("dig")

    async def place_block(self, reference: Block, face: Position) -> None:
        self._require_connection()
        if not self.equipped or self.inventory.get(self.equipped, 0) <= 0:
            raise WorldInteractionError("Nothing equipped to place")

        target = reference.position.offset(face.x, face.y, face.z)
        if target in self.blocks:
            raise WorldInteractionError(f"{target} is occupied by {self.blocks[target]}")
        if self._position.distance_to(target) > self.config.reach:
            raise WorldInteractionError(f"{target} is out of reach")

        await asyncio.sleep(0.25 * self.config.time_scale)
        self.blocks[target] = self.equipped
        self._take(self.equipped, 1)
        self._emit_activity("build")

    async def equip(self, item: InventoryItem, slot: str = "hand") -> None:
        self._require_connection()
        if self.inventory.get(item.name, 0) <= 0:
            raise WorldInteractionError(f"{item.name} is not in the inventory")
        self.equipped = item.name

    async def craft(self, recipe: str, quantity: int = 1, station: Optional[Block] = None) -> None:
        self._require_connection()
        if recipe not in RECIPE_BOOK:
            raise WorldInteractionError(f"Unknown recipe: {recipe}")

        ingredients, produced, needs_station = RECIPE_BOOK[recipe]
        if needs_station and (station is None or station.name != "crafting_table"):
            raise WorldInteractionError(f"{recipe} requires a crafting table")

        for name, amount in ingredients.items():
            if self.inventory.get(name, 0) < amount * quantity:
                raise WorldInteractionError(f"Missing ingredient {name} for {recipe}")

        await asyncio.sleep(0.25 * self.config.time_scale)
        for name, amount in ingredients.items():
            self._take(name, amount * quantity)
        self.inventory[recipe] = self.inventory.get(recipe, 0) + produced * quantity
        self._emit_activity("craft")

    def needs_station(self, item_name: str) -> bool:
        return RECIPE_BOOK.get(item_name, ({}, 0, False))[2]

    def inventory_items(self) -> List[InventoryItem]:
        return [InventoryItem(name, count) for name, count in self.inventory.items() if count > 0]

    async def chat(self, text: str) -> None:
        self._require_connection()
        logger.debug(f"<{self.identity}> {text}")
        self._emit_activity("chat")

    def _take(self, name: str, amount: int) -> None:
        self.inventory[name] -= amount
        if self.inventory[name] <= 0:
            del self.inventory[name]
            if self.equipped == name:
                self.equipped = None

    def _require_connection(self) -> None:
        if not self._connected:
            raise WorldInteractionError("Not connected to the world")

    def _generate_blocks(self) -> None:
        names = list(self.config.block_mix.keys())
        weights = np.array(list(self.config.block_mix.values()), dtype=float)
        weights /= weights.sum()

        radius = self.config.world_radius
        for _ in range(self.config.n_blocks):
            x, z = self._rng.integers(-radius, radius + 1, size=2)
            y = int(self._rng.integers(56, 72))
            name = names[self._rng.choice(len(names), p=weights)]
            self.blocks[Position(int(x), y, int(z))] = name
