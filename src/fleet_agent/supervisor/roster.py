"""
Fleet roster loading.

The roster is a list of agent definitions, each at least a name and a role:

    [{"name": "BrickWhiz", "role": "Builder"}, {"name": "MapSniffer", "role": "Explorer"}]

JSON and YAML (.yaml / .yml) documents are accepted.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Union

import yaml

from ..agent.config import AgentConfig
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def _read_document(path: Path) -> Any:
    if not path.exists():
        raise ConfigurationError(f"Roster not found at {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                return yaml.safe_load(f)
            return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Invalid roster {path}: {e}") from e


def load_roster(path: Union[str, Path]) -> List[AgentConfig]:
    """
    Load agent definitions from a roster file.

    Never raises: a missing or invalid document is logged and yields an
    empty roster. Entries without a name, or with a name seen before, are
    skipped.

    Args:
        path: JSON or YAML roster file

    Returns:
        Agent configs in roster order
    """
    path = Path(path)
    try:
        document = _read_document(path)
        if isinstance(document, dict):
            document = document.get("agents", document.get("bots"))
        if not isinstance(document, list):
            raise ConfigurationError(f"Roster {path} must be a list of agent definitions")
    except ConfigurationError as e:
        logger.error(f"Failed to load roster: {e}")
        return []

    roster: List[AgentConfig] = []
    seen = set()
    for index, entry in enumerate(document):
        if not isinstance(entry, dict) or not entry.get("name"):
            logger.warning(f"Skipping roster entry {index}: no agent name")
            continue

        name = str(entry["name"]).strip()
        if name in seen:
            logger.warning(f"Skipping duplicate agent name {name}")
            continue

        try:
            config = AgentConfig.from_dict({**entry, "name": name})
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping roster entry {name}: {e}")
            continue

        seen.add(name)
        roster.append(config)

    logger.info(f"Loaded roster with {len(roster)} agents from {path}")
    return roster
