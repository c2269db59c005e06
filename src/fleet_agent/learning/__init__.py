"""
Decision engine for fleet agents.

This package provides:
- Symbolic state derivation from the agent's observable condition
- Epsilon-greedy Q-learning over an individual table
- Weighted merging of global, role and individual tables
"""

from .states import AgentState, StateObservation, derive_state, LOW_RESOURCE_THRESHOLD
from .table_merge import (
    DEFAULT_STATE_PRIORS,
    MergeWeights,
    merge_tables,
    seed_default_states,
    seed_individual_table,
)
from .q_learner import QLearner, LearningConfig, DEFAULT_ACTIONS

__all__ = [
    "AgentState",
    "StateObservation",
    "derive_state",
    "LOW_RESOURCE_THRESHOLD",
    "DEFAULT_STATE_PRIORS",
    "MergeWeights",
    "merge_tables",
    "seed_default_states",
    "seed_individual_table",
    "QLearner",
    "LearningConfig",
    "DEFAULT_ACTIONS",
]
