"""
Three-tier action-value table merging.

Merging blends the global, role and individual tables additively. The
result is not a normalized average: magnitudes accumulate, and merging
the same sources twice without learning in between yields a larger
result the second time.
"""

import copy
from dataclasses import dataclass
from typing import Dict

from ..knowledge.qtable_store import QTable

# Priors inserted after every merge for states that are still missing
DEFAULT_STATE_PRIORS: Dict[str, Dict[str, float]] = {
    "state_idle": {"explore": 0.5, "gather": 0.5, "craft": 0.0},
    "state_mining": {"dig": 0.7, "explore": 0.2, "gather": 0.1},
    "state_building": {"placeBlock": 0.6, "explore": 0.3, "gather": 0.1},
}


@dataclass(frozen=True)
class MergeWeights:
    """Per-tier contribution to the merged table"""
    global_weight: float = 1.0
    role_weight: float = 0.3
    individual_weight: float = 0.2


def merge_tables(global_table: QTable,
                 role_table: QTable,
                 individual_table: QTable,
                 weights: MergeWeights = MergeWeights()) -> QTable:
    """
    Blend three tables into a new one.

    For every (state, action) present in any input:
        merged = global * w_g + role * w_r + individual * w_i
    with missing entries counted as 0. Inputs are left untouched and no
    previously known entry is dropped.
    """
    merged: QTable = {}
    for table, weight in (
        (global_table, weights.global_weight),
        (role_table, weights.role_weight),
        (individual_table, weights.individual_weight),
    ):
        for state, actions in table.items():
            merged_actions = merged.setdefault(state, {})
            for action, value in actions.items():
                merged_actions[action] = merged_actions.get(action, 0.0) + value * weight
    return merged


def seed_default_states(table: QTable) -> QTable:
    """Return a copy of `table` with any missing default state filled in"""
    seeded = copy.deepcopy(table)
    for state, priors in DEFAULT_STATE_PRIORS.items():
        if state not in seeded:
            seeded[state] = dict(priors)
    return seeded


def seed_individual_table(global_table: QTable, role_table: QTable) -> QTable:
    """Starting table for a brand-new agent: global states, role states on top"""
    table = copy.deepcopy(global_table)
    table.update(copy.deepcopy(role_table))
    return table
