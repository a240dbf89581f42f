"""
Lifecycle event sinks.

The engine notifies a sink after every committed create, update, and
reveal. Sinks are best-effort: the engine logs and discards anything a
sink raises, and the store mutation stands regardless.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from timecapsule.store.db import CapsuleDB


class EventKind(str, Enum):
    """Lifecycle transitions reported to sinks."""

    CREATED = "created"
    UPDATED = "updated"
    REVEALED = "revealed"


class CapsuleEvent(BaseModel):
    """A recorded lifecycle notification."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: EventKind
    caller: str
    capsule_id: str
    reveal_date: datetime
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EventSink(Protocol):
    """Receives lifecycle notifications for audit."""

    def notify(
        self,
        kind: EventKind,
        caller: str,
        capsule_id: str,
        reveal_date: datetime,
    ) -> None:
        ...


class NullEventSink:
    """Sink that drops every notification."""

    def notify(
        self,
        kind: EventKind,
        caller: str,
        capsule_id: str,
        reveal_date: datetime,
    ) -> None:
        """Discard the notification."""


class DBEventSink:
    """
    Sink that appends events to the capsule_events audit table.

    Usage:
        sink = DBEventSink(db)
        sink.notify(EventKind.CREATED, "alice", capsule.id, capsule.reveal_date)
        db.get_events(capsule.id)
    """

    def __init__(self, db: "CapsuleDB") -> None:
        self.db = db

    def notify(
        self,
        kind: EventKind,
        caller: str,
        capsule_id: str,
        reveal_date: datetime,
    ) -> None:
        self.db.record_event(
            CapsuleEvent(
                kind=kind,
                caller=caller,
                capsule_id=capsule_id,
                reveal_date=reveal_date,
            )
        )
