"""
Sample documents and fakes shared by the test suite.

Provides:
- Knowledge base, roster and Q-table documents
- A hand-laid simulated world
- A fake agent process for supervisor tests
"""

import itertools
from typing import Dict, Optional

from ...world import Position, SimulatedWorld, SimulatedWorldConfig


SAMPLE_KNOWLEDGE = {
    "recipes": {
        "crafting_table": {"ingredients": {"oak_planks": 4}},
        "wooden_pickaxe": {"ingredients": {"oak_planks": 3, "stick": 2}},
        "furnace": {"ingredients": {"cobblestone": 8}},
        "oak_planks": {"ingredients": {"oak_log": 1}},
        "stick": {"ingredients": {"oak_planks": 2}},
    },
    "structures": [
        {
            "name": "watchtower",
            "origin": {"x": 10, "y": 64, "z": 10},
            "blocks": [
                {"x": 0, "y": 0, "z": 0, "block": "cobblestone"},
                {"x": 0, "y": 1, "z": 0, "block": "cobblestone"},
            ],
        }
    ],
    "sharedResources": {},
}

SAMPLE_ROSTER = [
    {"name": "BrickWhiz", "role": "Builder"},
    {"name": "MapSniffer", "role": "Explorer"},
    {"name": "WanderWrench", "role": "Miner"},
]

SAMPLE_GLOBAL_TABLE = {
    "idle": {"explore": 1.0, "gather": 2.0, "idle": 0.0},
    "mining": {"dig": 4.0},
}

SAMPLE_ROLE_TABLE = {
    "idle": {"gather": 3.0, "craft": 1.0},
}


def make_world(blocks: Optional[Dict[Position, str]] = None,
               inventory: Optional[Dict[str, int]] = None,
               **overrides) -> SimulatedWorld:
    """An empty, instant simulated world with exactly the given blocks"""
    config = SimulatedWorldConfig(
        seed=7,
        n_blocks=0,
        time_scale=0.0,
        starting_inventory=dict(inventory or {}),
        **overrides,
    )
    world = SimulatedWorld(config)
    world.blocks.update(blocks or {})
    return world


class FakeProcess:
    """Stands in for multiprocessing.Process in supervisor tests"""

    _pids = itertools.count(40000)

    def __init__(self, name: str, connection=None):
        self.name = name
        self.connection = connection
        self.pid = next(self._pids)
        self.exitcode: Optional[int] = None
        self.terminated = False
        self.killed = False
        self.ignore_terminate = False

    def is_alive(self) -> bool:
        return self.exitcode is None

    def exit(self, code: int = 1) -> None:
        self.exitcode = code

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_terminate:
            self.exitcode = 0

    def kill(self) -> None:
        self.killed = True
        self.exitcode = -9

    def join(self, timeout: Optional[float] = None) -> None:
        pass
