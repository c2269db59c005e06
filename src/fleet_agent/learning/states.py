"""
Symbolic state derivation for the decision engine.

The state is recomputed from the agent's observable condition on every
decision cycle; nothing about previous states is retained.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class AgentState(Enum):
    """Symbolic situations an agent can be in"""
    IDLE = "idle"
    BUSY = "busy"
    LOW_RESOURCES = "lowResources"
    CONSTRUCTION_NEEDED = "constructionNeeded"
    EXPLORING = "exploring"
    MINING = "mining"
    BUILDING = "building"


# Current activity tag -> state
ACTIVITY_STATES = {
    "explore": AgentState.EXPLORING,
    "dig": AgentState.MINING,
    "gather": AgentState.MINING,
    "placeBlock": AgentState.BUILDING,
}

LOW_RESOURCE_THRESHOLD = 10


@dataclass(frozen=True)
class StateObservation:
    """What the agent can see about itself when deciding"""
    busy: bool = False
    log_count: int = 0
    pending_structures: int = 0
    current_activity: Optional[str] = None


def derive_state(observation: StateObservation,
                 low_resource_threshold: int = LOW_RESOURCE_THRESHOLD) -> AgentState:
    """
    Map an observation onto a symbolic state.

    Checks run in priority order: busy, low on logs, construction queued,
    then the activity the agent last chose; anything else is idle.
    """
    if observation.busy:
        return AgentState.BUSY
    if observation.log_count < low_resource_threshold:
        return AgentState.LOW_RESOURCES
    if observation.pending_structures > 0:
        return AgentState.CONSTRUCTION_NEEDED
    if observation.current_activity in ACTIVITY_STATES:
        return ACTIVITY_STATES[observation.current_activity]
    return AgentState.IDLE
