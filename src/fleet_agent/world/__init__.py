"""World-agent interface and the in-memory simulated world"""

import importlib
import logging
import os
from typing import Optional

from .interface import Block, InventoryItem, Position, WorldAgent, WORLD_EVENTS
from .simulated import SimulatedWorld, SimulatedWorldConfig, RECIPE_BOOK

logger = logging.getLogger(__name__)


def create_world(factory_path: Optional[str] = None) -> WorldAgent:
    """
    Build the world agent for an agent process.

    Args:
        factory_path: "module:callable" returning a WorldAgent; defaults to
            the FLEET_WORLD_FACTORY environment variable, then to SimulatedWorld

    Returns:
        A disconnected world agent
    """
    factory_path = factory_path or os.getenv("FLEET_WORLD_FACTORY")
    if not factory_path:
        return SimulatedWorld()

    module_name, _, attr = factory_path.partition(":")
    factory = getattr(importlib.import_module(module_name), attr or "create_world")
    world = factory()
    logger.info(f"Using world agent from {factory_path}: {type(world).__name__}")
    return world


__all__ = [
    "Block",
    "InventoryItem",
    "Position",
    "WorldAgent",
    "WORLD_EVENTS",
    "SimulatedWorld",
    "SimulatedWorldConfig",
    "RECIPE_BOOK",
    "create_world",
]
