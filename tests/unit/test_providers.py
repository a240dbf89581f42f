"""
Unit tests for identity, clock and identifier providers.
"""

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from timecapsule.providers import (
    IdGenerator,
    ManualClock,
    StaticIdentity,
    SystemClock,
    default_id_generator,
)


class TestIdGenerator:
    def test_uses_injected_source(self) -> None:
        """Ids are derived only from the injected random bytes."""
        requested: list[int] = []

        def source(n: int) -> bytes:
            requested.append(n)
            return bytes(range(n))

        ids = IdGenerator(source)
        first = ids.new_id()
        assert requested == [16]
        assert first == ids.new_id()

    def test_ids_are_version_4_uuids(self) -> None:
        capsule_id = IdGenerator(lambda n: b"\xff" * n).new_id()
        assert len(capsule_id) == 36
        assert uuid.UUID(capsule_id).version == 4

    def test_short_source_rejected(self) -> None:
        with pytest.raises(ValueError, match="expected 16"):
            IdGenerator(lambda n: b"\x00" * 4).new_id()

    def test_default_generator_is_unique(self) -> None:
        ids = default_id_generator()
        generated = {ids.new_id() for _ in range(1000)}
        assert len(generated) == 1000

    def test_ids_fit_key_bound(self) -> None:
        assert len(default_id_generator().new_id().encode("utf-8")) <= 44


class TestStaticIdentity:
    def test_reports_caller(self) -> None:
        assert StaticIdentity("alice").current_caller() == "alice"

    def test_empty_caller_rejected(self) -> None:
        with pytest.raises(ValueError):
            StaticIdentity("")


class TestClocks:
    def test_system_clock_is_utc(self) -> None:
        assert SystemClock().now().tzinfo is not None

    def test_system_clock_never_goes_backwards(self) -> None:
        clock = SystemClock()
        future = datetime.now(UTC) + timedelta(days=1)
        clock._last = future
        assert clock.now() == future

    def test_manual_clock_advances(self) -> None:
        start = datetime(2030, 1, 1, tzinfo=UTC)
        clock = ManualClock(start)
        assert clock.now() == start
        clock.set(start + timedelta(seconds=5))
        assert clock.now() == start + timedelta(seconds=5)

    def test_manual_clock_rejects_backwards(self) -> None:
        start = datetime(2030, 1, 1, tzinfo=UTC)
        clock = ManualClock(start)
        with pytest.raises(ValueError, match="backwards"):
            clock.set(start - timedelta(seconds=1))

    def test_manual_clock_naive_is_utc(self) -> None:
        clock = ManualClock(datetime(2030, 1, 1))
        assert clock.now() == datetime(2030, 1, 1, tzinfo=UTC)
