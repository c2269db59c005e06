"""
Tabular Q-learning decision engine.

Each agent owns one QLearner holding its individual action-value table.
Actions are picked epsilon-greedily and learned with one-step Q-learning;
persistence is left to the caller.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import numpy as np

from ..knowledge.qtable_store import QTable
from .states import AgentState
from .table_merge import MergeWeights, merge_tables, seed_default_states

logger = logging.getLogger(__name__)

# Actions a never-seen state starts with
DEFAULT_ACTIONS = ("explore", "gather", "idle")


@dataclass
class LearningConfig:
    """Hyperparameters for the decision engine"""
    learning_rate: float = 0.1      # alpha
    discount_factor: float = 0.9    # gamma
    exploration_rate: float = 0.3   # epsilon

    # Flat task outcome rewards
    success_reward: float = 10.0
    failure_reward: float = -10.0

    merge_weights: MergeWeights = field(default_factory=MergeWeights)
    seed: Optional[int] = None


def _state_key(state: Union[AgentState, str]) -> str:
    return state.value if isinstance(state, AgentState) else state


class QLearner:
    """
    Epsilon-greedy action selection over an individual Q-table.

    Features:
    - Lazy seeding of unseen states with zero-valued default actions
    - Greedy ties resolved by first-seen action order
    - One-step temporal-difference updates
    - Three-tier merging with default state priors
    """

    def __init__(self, config: Optional[LearningConfig] = None, table: Optional[QTable] = None):
        self.config = config or LearningConfig()
        self.table: QTable = table if table is not None else {}
        self._rng = np.random.default_rng(self.config.seed)

        self.stats = {
            "decisions": 0,
            "explorations": 0,
            "updates": 0,
            "merges": 0,
        }

    def choose_action(self, state: Union[AgentState, str]) -> Optional[str]:
        """
        Pick an action for `state`.

        Args:
            state: Current symbolic state

        Returns:
            The chosen action, or None if the state has no actions at all
        """
        key = _state_key(state)
        if key not in self.table:
            logger.warning(f"No actions defined for state: {key}. Initializing default actions.")
            self.table[key] = {action: 0.0 for action in DEFAULT_ACTIONS}

        actions = self.table[key]
        if not actions:
            return None

        self.stats["decisions"] += 1

        if self._rng.random() < self.config.exploration_rate:
            self.stats["explorations"] += 1
            names = list(actions.keys())
            return names[int(self._rng.integers(len(names)))]

        best_action = None
        best_value = -float("inf")
        for action, value in actions.items():
            if value > best_value:
                best_value = value
                best_action = action
        return best_action

    def update(self,
               state: Union[AgentState, str],
               action: str,
               reward: float,
               next_state: Union[AgentState, str]) -> float:
        """
        Apply Q(s,a) <- Q(s,a) + alpha * (r + gamma * max Q(s',.) - Q(s,a)).

        Returns:
            The new value of Q(s,a)
        """
        key = _state_key(state)
        next_key = _state_key(next_state)

        current = self.table.get(key, {}).get(action, 0.0)
        next_actions = self.table.get(next_key)
        max_next = max(next_actions.values()) if next_actions else 0.0

        alpha = self.config.learning_rate
        new_value = current + alpha * (reward + self.config.discount_factor * max_next - current)

        self.table.setdefault(key, {})[action] = new_value
        self.stats["updates"] += 1

        logger.info(f"Q-table updated: [{key}] {action} => {new_value:.2f}")
        return new_value

    def reward_for(self, success: bool) -> float:
        return self.config.success_reward if success else self.config.failure_reward

    def merge_from(self, global_table: QTable, role_table: QTable) -> QTable:
        """
        Replace the individual table with the weighted blend of all tiers.

        Returns:
            The new individual table
        """
        merged = merge_tables(global_table, role_table, self.table, self.config.merge_weights)
        self.table = seed_default_states(merged)
        self.stats["merges"] += 1

        logger.info(f"Merged Q-tables: {len(self.table)} states")
        return self.table

    def get_statistics(self) -> Dict[str, Any]:
        return {
            **self.stats,
            "states": len(self.table),
            "exploration_share": (
                self.stats["explorations"] / self.stats["decisions"] if self.stats["decisions"] else 0.0
            ),
        }
