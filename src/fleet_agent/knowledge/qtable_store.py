"""
Persistence for action-value tables.

Each tier (individual, role, global) lives in its own JSON document.
Documents are overwritten in full on every save; there is no locking,
so concurrent writers race and the last one wins.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Union

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

# state -> action -> value
QTable = Dict[str, Dict[str, float]]

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TableSnapshot:
    """The three tiers as read from disk at one moment"""
    global_table: QTable = field(default_factory=dict)
    role_table: QTable = field(default_factory=dict)
    individual_table: QTable = field(default_factory=dict)


class QTableStore:
    """
    Loads and saves action-value tables.

    Loading never raises: a missing file yields an empty table and a
    corrupt one is logged and replaced by an empty table, which the next
    save then overwrites.
    """

    def load(self, path: PathLike) -> QTable:
        """
        Load a table from disk.

        Args:
            path: Table document

        Returns:
            The parsed table, or {} when missing or unreadable
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Q-table not found at {path}, starting empty")
            return {}

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return self._validate(path, data)
        except (OSError, ValueError, PersistenceError) as e:
            error = e if isinstance(e, PersistenceError) else PersistenceError(path, str(e))
            logger.error(f"Failed to load Q-table: {error}")
            return {}

    def save(self, path: PathLike, table: QTable) -> None:
        """
        Overwrite the table document at `path`.

        Raises:
            PersistenceError: the document could not be written
        """
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(table, f, indent=2)
        except (OSError, TypeError) as e:
            raise PersistenceError(path, f"write failed: {e}") from e

        logger.debug(f"Saved Q-table ({len(table)} states) to {path}")

    def load_tiers(self, global_path: PathLike, role_path: PathLike, individual_path: PathLike) -> TableSnapshot:
        """Read all three tiers"""
        return TableSnapshot(
            global_table=self.load(global_path),
            role_table=self.load(role_path),
            individual_table=self.load(individual_path),
        )

    def _validate(self, path: Path, data) -> QTable:
        if not isinstance(data, dict):
            raise PersistenceError(path, "expected a mapping of states")

        table: QTable = {}
        for state, actions in data.items():
            if not isinstance(actions, dict):
                raise PersistenceError(path, f"state {state!r} is not a mapping of actions")
            try:
                table[state] = {action: float(value) for action, value in actions.items()}
            except (TypeError, ValueError):
                raise PersistenceError(path, f"state {state!r} has a non-numeric value")
        return table
