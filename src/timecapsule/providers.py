"""
Collaborators consumed by the engine: caller identity, clock, and ids.

The engine never derives identity or reads the wall clock itself. Both
are injected so that a host (RPC layer, CLI, tests) decides who is
calling and what time it is.
"""

import secrets
import uuid
from datetime import UTC, datetime
from typing import Callable, Protocol


class IdentityProvider(Protocol):
    """Supplies the identity of the invoking caller."""

    def current_caller(self) -> str:
        ...


class Clock(Protocol):
    """Supplies the current time, never moving backwards."""

    def now(self) -> datetime:
        ...


class StaticIdentity:
    """Identity provider that always reports the same caller."""

    def __init__(self, caller: str) -> None:
        if not caller:
            raise ValueError("caller identity must not be empty")
        self.caller = caller

    def current_caller(self) -> str:
        return self.caller


class SystemClock:
    """
    Wall clock in UTC.

    Readings are clamped to the last value returned, so a backwards
    system clock adjustment cannot make a revealed capsule look sealed.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(UTC)
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current


class ManualClock:
    """Clock that only moves when told to. Used by the CLI --now option."""

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        """Move the clock to a new time. Moving backwards is an error."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        if value < self._now:
            raise ValueError(f"clock cannot move backwards: {value} < {self._now}")
        self._now = value


class IdGenerator:
    """
    Produces capsule identifiers from a cryptographically strong source.

    The random source is required; there is no weaker fallback. Ids are
    RFC 4122 version-4 UUID strings (36 characters).

    Usage:
        ids = IdGenerator(secrets.token_bytes)
        capsule_id = ids.new_id()
    """

    def __init__(self, randbytes: Callable[[int], bytes]) -> None:
        self._randbytes = randbytes

    def new_id(self) -> str:
        raw = self._randbytes(16)
        if len(raw) != 16:
            raise ValueError(f"random source returned {len(raw)} bytes, expected 16")
        return str(uuid.UUID(bytes=raw, version=4))


def default_id_generator() -> IdGenerator:
    """IdGenerator backed by the operating system CSPRNG."""
    return IdGenerator(secrets.token_bytes)
