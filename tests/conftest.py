"""
Test configuration and fixtures.
"""

import pytest

from redis_migrate.config import MigrationSpec
from redis_migrate.progress import ProgressTracker


class FakeClock:
    """Manually advanced clock for deterministic rate/ETA checks."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def advance(self, seconds: float):
        self.now += seconds

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker():
    return ProgressTracker()


@pytest.fixture
def make_spec():
    """Build a MigrationSpec with test-friendly defaults."""
    def _make_spec(**overrides) -> MigrationSpec:
        values = {
            'source_url': 'redis://source:6379/0',
            'dest_url': 'redis://dest:6379/0',
            'pattern': 'user:*',
            'batch_size': 2,
            'concurrency': 2,
        }
        values.update(overrides)
        return MigrationSpec(**values)
    return _make_spec
