"""
Shared knowledge document: recipes, structure plans and resource locations.

Any agent may mutate the document; it is flushed whole, without merging
or versioning, so the last flush wins.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

# Gathering one of these items teaches the agent the mapped recipe
RECIPE_UNLOCKS: Dict[str, str] = {
    "cobblestone": "furnace",
    "oak_planks": "crafting_table",
    "iron_ingot": "iron_pickaxe",
    "diamond": "diamond_pickaxe",
    "stick": "wooden_pickaxe",
}


@dataclass
class KnowledgeBase:
    """In-memory form of the shared knowledge document"""
    recipes: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    structures: List[Dict[str, Any]] = field(default_factory=list)
    shared_resources: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipes": self.recipes,
            "structures": self.structures,
            "sharedResources": self.shared_resources,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBase":
        recipes = data.get("recipes", {})
        structures = data.get("structures", [])
        shared = data.get("sharedResources", {})
        if not isinstance(recipes, dict) or not isinstance(structures, list) or not isinstance(shared, dict):
            raise ValueError("recipes, structures and sharedResources have the wrong shape")

        valid_recipes = {}
        for name, recipe in recipes.items():
            if _is_recipe(recipe):
                valid_recipes[name] = recipe
            else:
                logger.warning(f"Dropping malformed recipe {name!r}: {recipe!r}")

        valid_structures = []
        for plan in structures:
            if isinstance(plan, dict):
                valid_structures.append(plan)
            else:
                logger.warning(f"Dropping malformed structure plan: {plan!r}")

        valid_shared = {name: pos for name, pos in shared.items() if isinstance(pos, dict)}
        return cls(recipes=valid_recipes, structures=valid_structures, shared_resources=valid_shared)


def _is_recipe(recipe: Any) -> bool:
    if not isinstance(recipe, dict):
        return False
    ingredients = recipe.get("ingredients", {})
    return isinstance(ingredients, dict) and all(isinstance(q, int) for q in ingredients.values())


class KnowledgeStore:
    """
    Owns the knowledge document for one process.

    Features:
    - Load with an empty default on missing or corrupt input
    - Recipe learning from gathered items
    - Explorer resource sightings
    - Structure plans as a builder work queue
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.knowledge = KnowledgeBase()

    def load(self) -> KnowledgeBase:
        """
        Load the document from disk, replacing the in-memory copy.

        Never raises; missing or corrupt input yields the empty default.
        """
        if not self.path.exists():
            logger.warning(f"Knowledge base not found at {self.path}, using empty default")
            self.knowledge = KnowledgeBase()
            return self.knowledge

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self.knowledge = KnowledgeBase.from_dict(json.load(f))
            logger.info(
                f"Knowledge base loaded: {len(self.knowledge.recipes)} recipes, "
                f"{len(self.knowledge.structures)} structures, "
                f"{len(self.knowledge.shared_resources)} shared resources"
            )
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load knowledge base: {PersistenceError(self.path, str(e))}")
            self.knowledge = KnowledgeBase()

        return self.knowledge

    def flush(self) -> None:
        """
        Overwrite the document with the in-memory copy.

        Raises:
            PersistenceError: the document could not be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self.knowledge.to_dict(), f, indent=2)
        except OSError as e:
            raise PersistenceError(self.path, f"write failed: {e}") from e

    def ensure_exists(self) -> bool:
        """Write the empty default if no document exists yet. Returns True if created."""
        if self.path.exists():
            return False
        self.knowledge = KnowledgeBase()
        self.flush()
        logger.info(f"Initialized shared knowledge base at {self.path}")
        return True

    def record_recipe_learned(self, item_name: str) -> Optional[str]:
        """
        Learn the recipe unlocked by gathering `item_name`.

        The recipe is only (re)written when a template for it already
        exists in the document.

        Returns:
            The recipe name learned, or None
        """
        recipe_name = RECIPE_UNLOCKS.get(item_name)
        if recipe_name is None:
            return None

        template = self.knowledge.recipes.get(recipe_name)
        if template is None:
            return None

        logger.info(f"Learning recipe: {recipe_name}")
        self.knowledge.recipes[recipe_name] = template
        self.flush()
        return recipe_name

    def recipe_for(self, item_name: str) -> Optional[Dict[str, int]]:
        """Ingredient quantities for `item_name`, if known"""
        recipe = self.knowledge.recipes.get(item_name)
        if recipe is None:
            return None
        return dict(recipe.get("ingredients", {}))

    def record_resource(self, resource: str, position: Dict[str, float]) -> None:
        """Remember the last place `resource` was seen and flush"""
        self.knowledge.shared_resources[resource] = dict(position)
        self.flush()

    @property
    def pending_structures(self) -> int:
        return len(self.knowledge.structures)

    def next_structure(self) -> Optional[Dict[str, Any]]:
        """The next structure plan to build, without removing it"""
        if not self.knowledge.structures:
            return None
        return self.knowledge.structures[0]

    def complete_structure(self, name: str) -> bool:
        """
        Drop the first queued plan called `name` and flush.

        Returns:
            False if no such plan was queued
        """
        for index, plan in enumerate(self.knowledge.structures):
            if plan.get("name") == name:
                del self.knowledge.structures[index]
                self.flush()
                return True
        return False
