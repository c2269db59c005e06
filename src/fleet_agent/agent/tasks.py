"""
Role tasks an agent can execute in the world.

Every public task is bounded by the busy guard and catches world failures
at the call site: the failure is logged, the guard released and the task
reports False so the next decision cycle can try something else.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import numpy as np

from ..coordination.messages import HelpType
from ..errors import PathTimeoutError, PersistenceError, WorldInteractionError
from ..knowledge.knowledge_base import KnowledgeStore
from ..learning.states import StateObservation
from ..world.interface import Block, Position, WorldAgent
from .busy_guard import BusyGuard
from .config import AgentRuntimeConfig

logger = logging.getLogger(__name__)

MINING_TARGETS = ("stone", "iron_ore", "coal_ore", "gold_ore", "diamond_ore", "redstone_ore")
TREE_TARGETS = ("oak_log", "birch_log", "spruce_log", "jungle_log", "acacia_log", "dark_oak_log")
VALUABLE_ORES = ("diamond_ore", "emerald_ore", "gold_ore")

# Help detail meaning "any of VALUABLE_ORES"
ANY_VALUABLE_ORE = "valuable_ore"

TOOL_MAPPINGS = {
    "stone": "pickaxe",
    "iron_ore": "pickaxe",
    "coal_ore": "pickaxe",
    "gold_ore": "pickaxe",
    "diamond_ore": "pickaxe",
    "redstone_ore": "pickaxe",
    "dirt": "shovel",
    "grass": "shovel",
    "sand": "shovel",
    "oak_log": "axe",
    "birch_log": "axe",
    "spruce_log": "axe",
    "jungle_log": "axe",
    "acacia_log": "axe",
    "dark_oak_log": "axe",
}

# Crafting ingredient -> block it is dug from
INGREDIENT_SOURCES = {
    "cobblestone": "stone",
}

EXPLORE_RADIUS = 50.0
SURVEY_RADIUS = 32.0
MAX_CRAFT_DEPTH = 3
MAX_INGREDIENT_ROUNDS = 6

HelpCallback = Callable[[str, Dict[str, Any]], None]


class RoleTasks:
    """
    The concrete behaviors behind decision-engine actions.

    Actions:
    - explore: wander, survey for valuable ores, share sightings
    - gather / dig: harvest the nearest resource, exploring if none is near
    - craft: craft a wooden pickaxe (and whatever it needs)
    - placeBlock: build the next queued structure plan
    - idle: wander to a nearby point
    """

    def __init__(self,
                 world: WorldAgent,
                 knowledge: KnowledgeStore,
                 busy_guard: BusyGuard,
                 config: Optional[AgentRuntimeConfig] = None,
                 request_help: Optional[HelpCallback] = None,
                 rng: Optional[np.random.Generator] = None):
        self.world = world
        self.knowledge = knowledge
        self.busy_guard = busy_guard
        self.config = config or AgentRuntimeConfig()
        self.request_help = request_help
        self._rng = rng or np.random.default_rng()

        self.current_activity: Optional[str] = None
        self._actions: Dict[str, Callable[[], Awaitable[bool]]] = {
            "explore": self.explore,
            "discover": self.explore,
            "gather": self.gather,
            "dig": self.mine,
            "craft": self.craft,
            "placeBlock": self.build_next_structure,
            "idle": self.idle,
        }

    @property
    def known_actions(self) -> List[str]:
        return list(self._actions.keys())

    async def execute(self, action: Optional[str]) -> bool:
        """
        Run the task behind a decision-engine action.

        Returns:
            True if the task succeeded
        """
        task = self._actions.get(action)
        if task is None:
            logger.warning(f"No specific action for {action}. Defaulting to idle.")
            action, task = "idle", self.idle

        self.current_activity = action
        return await task()

    def observe(self) -> StateObservation:
        """Snapshot the inputs the decision engine derives its state from"""
        log_count = sum(item.count for item in self.world.inventory_items() if "log" in item.name)
        return StateObservation(
            busy=self.busy_guard.is_busy,
            log_count=log_count,
            pending_structures=self.knowledge.pending_structures,
            current_activity=self.current_activity,
        )

    # --- Gathering ---

    async def gather(self, targets: Optional[Sequence[str]] = None) -> bool:
        """Harvest the nearest target block; explore once if none is in range"""
        targets = tuple(targets) if targets else MINING_TARGETS + TREE_TARGETS
        if not self.busy_guard.try_acquire("gather"):
            return False

        try:
            block = self._find_nearest(targets)
            if block is None:
                logger.info(f"No targets found for {', '.join(targets[:3])}... Exploring nearby areas.")
                return await self._explore_for(targets)

            await self._travel(block.position)
            await self._harvest(block)
            return True
        except WorldInteractionError as e:
            self._log_world_error("gathering", e)
            return False
        finally:
            self.busy_guard.release()

    async def mine(self) -> bool:
        """Miner routine: gather ores and stone only"""
        return await self.gather(MINING_TARGETS)

    async def _explore_for(self, targets: Sequence[str]) -> bool:
        logger.info("Exploring further for resources...")
        await self._travel(self._random_nearby_point())

        block = self._find_nearest(targets)
        if block is None:
            logger.warning("No targets found after exploring. Switching tasks.")
            return False

        logger.info(f"Found new target: {block.name}. Gathering...")
        await self._travel(block.position)
        await self._harvest(block)
        return True

    async def _harvest(self, block: Block) -> None:
        await self._equip_best_tool(block)
        await self.world.dig(block)
        logger.info(f"Successfully mined block: {block.name}")
        self._update_knowledge(self.knowledge.record_recipe_learned, block.name)

    async def _gather_wood(self) -> bool:
        tree = self._find_nearest(TREE_TARGETS)
        if tree is None:
            logger.warning("No trees found for gathering wood.")
            return False

        await self._travel(tree.position)
        await self._harvest(tree)
        return True

    async def equip_best_tool(self, block: Block) -> bool:
        """Equip the right tool for `block`. Returns True if a tool is in hand."""
        if not self.busy_guard.try_acquire("equip"):
            return False

        try:
            return await self._equip_best_tool(block)
        except WorldInteractionError as e:
            self._log_world_error("equipping", e)
            return False
        finally:
            self.busy_guard.release()

    async def _equip_best_tool(self, block: Block) -> bool:
        tool_type = TOOL_MAPPINGS.get(block.name)
        if tool_type is None:
            logger.debug(f"No tool required for block: {block.name}")
            return False

        tool = self.world.find_inventory_item(tool_type)
        if tool is None and tool_type == "pickaxe":
            logger.warning(f"No suitable tool found for {block.name}. Initiating crafting sequence...")
            await self._craft_pickaxe()
            tool = self.world.find_inventory_item(tool_type)

        if tool is None:
            logger.info(f"No {tool_type} available, digging {block.name} by hand")
            return False

        await self.world.equip(tool, "hand")
        logger.info(f"Equipped {tool.name} for mining {block.name}")
        return True

    # --- Crafting ---

    async def craft(self, item_name: str = "wooden_pickaxe") -> bool:
        """Craft `item_name` from its known recipe, gathering and crafting inputs on the way"""
        if not self.busy_guard.try_acquire("craft"):
            return False

        try:
            if item_name == "wooden_pickaxe":
                return await self._craft_pickaxe()
            return await self._craft_item(item_name)
        except WorldInteractionError as e:
            self._log_world_error("crafting", e)
            return False
        finally:
            self.busy_guard.release()

    async def _craft_pickaxe(self) -> bool:
        if self.world.find_inventory_item("log") is None and self.world.find_inventory_item("planks") is None:
            logger.info("No wood found. Gathering wood...")
            await self._gather_wood()

        logger.info("Crafting a wooden pickaxe...")
        return await self._craft_item("wooden_pickaxe")

    async def _craft_item(self, item_name: str, depth: int = 0) -> bool:
        ingredients = self.knowledge.recipe_for(item_name)
        if ingredients is None:
            logger.error(f"Recipe for {item_name} not found.")
            return False

        # Placing a table consumes planks, so settle the station first
        station = None
        if self.world.needs_station(item_name):
            station = await self._find_or_place_crafting_table(depth)
            if station is None:
                logger.error(f"No crafting table available for {item_name}.")
                return False

        # Crafting one ingredient can consume another, so re-check every round
        for _ in range(MAX_INGREDIENT_ROUNDS):
            missing = self._first_missing(ingredients)
            if missing is None:
                break
            logger.warning(f"Missing ingredient: {missing}, gathering now...")
            if not await self._gather_missing_ingredient(missing, depth):
                logger.error(f"Failed to gather ingredient: {missing}.")
                return False

        if self._first_missing(ingredients) is not None:
            logger.error(f"Still missing ingredients for {item_name}.")
            return False

        await self.world.craft(item_name, 1, station)
        logger.info(f"{item_name} crafted successfully.")
        self._update_knowledge(self.knowledge.record_recipe_learned, item_name)
        return True

    async def _gather_missing_ingredient(self, ingredient: str, depth: int) -> bool:
        if "log" in ingredient:
            return await self._gather_wood()

        source = INGREDIENT_SOURCES.get(ingredient, ingredient)
        if "stone" in source or "ore" in source:
            block = self._find_nearest((source,))
            if block is None:
                logger.warning(f"No {source} nearby for {ingredient}.")
                return False
            await self._travel(block.position)
            await self._harvest(block)
            return True

        if depth < MAX_CRAFT_DEPTH and self.knowledge.recipe_for(ingredient) is not None:
            return await self._craft_item(ingredient, depth + 1)

        logger.warning(f"No automatic gathering logic defined for ingredient: {ingredient}.")
        return False

    async def _find_or_place_crafting_table(self, depth: int) -> Optional[Block]:
        table = self._find_nearest(("crafting_table",))
        if table is not None:
            return table

        logger.info("No crafting table found nearby, placing one...")
        if self.world.find_inventory_item("crafting_table") is None:
            if depth >= MAX_CRAFT_DEPTH or not await self._craft_item("crafting_table", depth + 1):
                return None

        item = self.world.find_inventory_item("crafting_table")
        await self.world.equip(item, "hand")
        below = self.world.block_at(self.world.position.offset(0, -1, 0))
        await self.world.place_block(below, Position(0, 1, 0))
        logger.info("Crafting table placed.")
        return self._find_nearest(("crafting_table",))

    # --- Exploring ---

    async def explore(self) -> bool:
        """Travel somewhere nearby and share any valuable ores seen there"""
        if not self.busy_guard.try_acquire("explore"):
            return False

        try:
            destination = self._random_nearby_point()
            await self._travel(destination)
            logger.info(f"Moved to exploration point at {destination}")
            discovered = self._survey_area()
        except WorldInteractionError as e:
            self._log_world_error("exploration", e)
            return False
        finally:
            self.busy_guard.release()

        if not discovered:
            logger.warning("No valuable resources found. Requesting assistance for resource gathering.")
            self._ask_for_help(HelpType.RESOURCE_GATHER, {"resource": ANY_VALUABLE_ORE})
        return True

    def _survey_area(self) -> List[Block]:
        discovered = []
        for resource in VALUABLE_ORES:
            blocks = self.world.find_block(lambda b, r=resource: b.name == r, SURVEY_RADIUS, count=5)
            for block in blocks:
                logger.info(f"Discovered {resource} at {block.position}")
                discovered.append(block)
            if blocks:
                # nearest sighting
                self._update_knowledge(self.knowledge.record_resource, resource, blocks[0].position.to_dict())
        return discovered

    async def idle(self) -> bool:
        """Default behavior: wander to a nearby point"""
        if not self.busy_guard.try_acquire("idle"):
            return False

        try:
            destination = self._random_nearby_point()
            await self._travel(destination)
            logger.info(f"Moved to exploration point at {destination}")
            return True
        except WorldInteractionError as e:
            self._log_world_error("idle wandering", e)
            return False
        finally:
            self.busy_guard.release()

    # --- Building ---

    async def build_next_structure(self) -> bool:
        plan = self.knowledge.next_structure()
        if plan is None:
            logger.info("No structures to build. Gathering resources.")
            return await self.gather()
        return await self.build_structure(plan, from_queue=True)

    async def build_structure(self, plan: Dict[str, Any], from_queue: bool = False) -> bool:
        """
        Place every block of a structure plan.

        A block missing from the inventory aborts the build and asks the
        fleet for that resource. Only a plan taken from the knowledge base
        queue is removed from it on completion.
        """
        if not isinstance(plan, dict):
            logger.error(f"Invalid structure plan: {plan!r}")
            return False
        if not self.busy_guard.try_acquire("build"):
            return False

        name = "structure"
        missing = None
        try:
            name = plan.get("name", name)
            origin = Position.from_dict(plan["origin"])
            for entry in plan.get("blocks", []):
                block_pos = origin.offset(entry["x"], entry["y"], entry["z"])
                existing = self.world.block_at(block_pos)
                if existing is not None and existing.name != "air":
                    logger.info(f"Block already present at {block_pos}. Skipping.")
                    continue

                await self._travel(block_pos)

                item = next((i for i in self.world.inventory_items() if i.name == entry["block"]), None)
                if item is None:
                    missing = entry["block"]
                    break

                await self.world.equip(item, "hand")
                await self.world.place_block(self.world.block_at(block_pos.offset(0, -1, 0)), Position(0, 1, 0))
                logger.info(f"Placed block: {entry['block']} at {block_pos}")
        except (KeyError, TypeError, AttributeError) as e:
            logger.error(f"Invalid structure plan {name}: {e}")
            return False
        except WorldInteractionError as e:
            self._log_world_error("building", e)
            return False
        finally:
            self.busy_guard.release()

        if missing is not None:
            logger.warning(f"Required block {missing} not found in inventory. Requesting resources.")
            self._ask_for_help(HelpType.RESOURCE_GATHER, {"resource": missing})
            return False

        logger.info(f"Construction of {name} completed.")
        if from_queue:
            self._update_knowledge(self.knowledge.complete_structure, name)
        return True

    # --- Assisting other agents ---

    async def assist_resource_gather(self, details: Dict[str, Any]) -> bool:
        """Single bounded attempt to dig one block of the requested resource"""
        resource = details.get("resource")
        if not self.busy_guard.try_acquire("assist"):
            logger.info(f"Busy, cannot assist with {resource}")
            return False

        try:
            names = VALUABLE_ORES if resource == ANY_VALUABLE_ORE else (resource,)
            block = self._find_nearest(names)
            if block is None:
                logger.warning(f"Requested resource {resource} not found or position is undefined.")
                return False

            await self._travel(block.position)
            await self._equip_best_tool(block)
            await self.world.dig(block)
            logger.info(f"Assisted in gathering resource: {block.name} at {block.position}")
            return True
        except WorldInteractionError as e:
            self._log_world_error("assisting resource gathering", e)
            return False
        finally:
            self.busy_guard.release()

    async def assist_build(self, details: Dict[str, Any]) -> bool:
        plan = details.get("structure")
        if not isinstance(plan, dict) or not plan:
            logger.warning(f"Build assist without a usable structure plan: {plan!r}")
            return False
        return await self.build_structure(plan)

    async def heartbeat(self) -> None:
        try:
            await self.world.chat("I am still alive!")
        except WorldInteractionError as e:
            self._log_world_error("heartbeat", e)

    # --- Helpers ---

    async def _travel(self, target: Position) -> None:
        await self.world.goto(target, timeout_ms=self.config.path_timeout_ms)

    def _find_nearest(self, names: Sequence[str]) -> Optional[Block]:
        wanted = set(names)
        found = self.world.find_block(lambda b: b.name in wanted, self.config.search_distance, count=1)
        return found[0] if found else None

    def _random_nearby_point(self) -> Position:
        here = self.world.position
        dx, dz = self._rng.uniform(-EXPLORE_RADIUS, EXPLORE_RADIUS, size=2)
        return Position(round(here.x + float(dx)), here.y, round(here.z + float(dz)))

    def _count(self, item_name: str) -> int:
        return sum(i.count for i in self.world.inventory_items() if i.name == item_name)

    def _first_missing(self, ingredients: Dict[str, int]) -> Optional[str]:
        for ingredient, quantity in ingredients.items():
            if self._count(ingredient) < quantity:
                return ingredient
        return None

    def _ask_for_help(self, help_type: str, details: Dict[str, Any]) -> None:
        if self.request_help is None:
            logger.warning(f"No coordination channel, cannot request {help_type}")
            return
        self.request_help(help_type, details)

    def _update_knowledge(self, update: Callable[..., Any], *args) -> None:
        """Apply a knowledge change; if the flush fails the change stays in memory only"""
        try:
            update(*args)
        except PersistenceError as e:
            logger.error(f"Failed to save knowledge base: {e}")

    def _log_world_error(self, activity: str, error: WorldInteractionError) -> None:
        if isinstance(error, PathTimeoutError):
            logger.warning(f"Pathfinding timed out during {activity}: {error}")
        else:
            logger.error(f"Error during {activity}: {error}")
