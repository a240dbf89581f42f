"""
Pytest configuration and fixtures for time capsule tests.

This module provides shared fixtures used across unit and integration
tests.
"""

import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Generator

import pytest

from timecapsule.engine import CapsuleEngine
from timecapsule.providers import ManualClock, StaticIdentity
from timecapsule.schema import EngineConfig

T0 = datetime(2030, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def t0() -> datetime:
    """Fixed starting time for clock-driven tests."""
    return T0


@pytest.fixture
def clock() -> ManualClock:
    """A clock pinned at T0."""
    return ManualClock(T0)


@pytest.fixture
def identity() -> StaticIdentity:
    """Caller identity; tests switch callers by assigning .caller."""
    return StaticIdentity("alice")


@pytest.fixture
def engine(
    temp_dir: Path,
    identity: StaticIdentity,
    clock: ManualClock,
) -> Generator[CapsuleEngine, None, None]:
    """Create an engine with a temporary database and default config."""
    eng = CapsuleEngine(
        identity=identity,
        config=EngineConfig(db_path=temp_dir / "test.db"),
        clock=clock,
    )
    yield eng
    eng.close()
