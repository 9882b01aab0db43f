"""Shared fixtures."""
from __future__ import annotations

import pytest

from ai_core.config import Settings
from ai_core.memory import ExperienceStore


@pytest.fixture
def store():
    """Empty experience store."""
    return ExperienceStore()


@pytest.fixture
def populated_store():
    """Store with a handful of experiences about pets and coffee."""
    store = ExperienceStore()
    store.append("The cat sleeps on the sofa", "diary")
    store.append("Coffee tastes better in the morning", "notes")
    store.append("My cat likes coffee foam", "diary", metadata="funny")
    return store


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "data" / "memory.json"


@pytest.fixture
def settings(snapshot_path):
    """Settings pointing at a temporary snapshot file."""
    return Settings(
        bearer_token="test-token",
        snapshot_path=snapshot_path,
        snapshot_interval_s=60.0,
        lock_timeout_s=5.0,
        llm_timeout_s=2.0,
    )
