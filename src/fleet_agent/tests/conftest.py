"""
Pytest configuration and shared fixtures for fleet agent tests.

This module provides common test fixtures, fake processes, and sample
documents used across the test suite.
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest

from ..agent.busy_guard import BusyGuard
from ..agent.config import AgentConfig, AgentRuntimeConfig, Role
from ..knowledge import KnowledgeStore
from .fixtures.documents import (
    SAMPLE_KNOWLEDGE,
    SAMPLE_ROSTER,
    FakeProcess,
)


# --- Filesystem ---

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def knowledge_path(temp_dir):
    """Knowledge base document pre-filled with sample recipes and a structure."""
    path = temp_dir / "shared" / "knowledgeBase.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(SAMPLE_KNOWLEDGE, indent=2))
    return path


@pytest.fixture
def knowledge_store(knowledge_path):
    store = KnowledgeStore(knowledge_path)
    store.load()
    return store


@pytest.fixture
def roster_file(temp_dir):
    path = temp_dir / "botsConfig.json"
    path.write_text(json.dumps(SAMPLE_ROSTER))
    return path


# --- Agent components ---

@pytest.fixture
def busy_guard():
    return BusyGuard()


@pytest.fixture
def agent_config():
    return AgentConfig(name="TestMiner", role=Role.MINER)


@pytest.fixture
def runtime_config(temp_dir):
    """Fast runtime timings for tests."""
    return AgentRuntimeConfig(
        decision_interval=0.01,
        merge_interval=60.0,
        heartbeat_interval=60.0,
        message_poll_interval=0.01,
        idle_threshold=60.0,
        help_wait=0.05,
        data_dir=str(temp_dir),
    )


@pytest.fixture
def fake_process_factory():
    """Process factory recording every FakeProcess it creates."""
    created = []

    def factory(config, connection):
        process = FakeProcess(config.name, connection)
        created.append(process)
        return process

    factory.created = created
    return factory
