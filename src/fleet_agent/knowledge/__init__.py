"""
Knowledge store for the fleet.

This package persists:
- Action-value tables for the individual, role and global tiers
- The shared knowledge document (recipes, structures, resource locations)
"""

from .qtable_store import QTable, QTableStore, TableSnapshot
from .knowledge_base import KnowledgeBase, KnowledgeStore, RECIPE_UNLOCKS

__all__ = [
    "QTable",
    "QTableStore",
    "TableSnapshot",
    "KnowledgeBase",
    "KnowledgeStore",
    "RECIPE_UNLOCKS",
]
