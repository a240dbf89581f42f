"""
Capsule Engine for the time capsule store.

The Engine is the orchestration layer behind every exposed operation.
It coordinates between:
- Identity and Clock providers: Who is calling, and when
- Validation: Payload shape and ownership checks
- Storage: The two capsule maps
- Event Sink: Best-effort lifecycle notifications

Execution Flow:
    1. Resolve caller identity and current time
    2. Validate payload and authorization
    3. Read-modify-write inside one store transaction
    4. Notify the event sink (failures are logged, never rolled back)
    5. Return an OperationResult

Design Principles:
    - Errors are values: domain failures come back as OperationResult.error
    - No partial application: every failure leaves the store unchanged
    - One-way reveal: is_revealed flips at most once per capsule
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Generic, TypeVar

from timecapsule.errors import (
    AlreadyRevealedError,
    CapsuleError,
    CapsuleNotFoundError,
    NotYetRevealableError,
)
from timecapsule.events import DBEventSink, EventKind, EventSink, NullEventSink
from timecapsule.providers import (
    Clock,
    IdentityProvider,
    IdGenerator,
    SystemClock,
    default_id_generator,
)
from timecapsule.schema import (
    CapsuleSnapshot,
    CommunityTimeCapsule,
    CommunityTimeCapsulePayload,
    EngineConfig,
    TimeCapsule,
    TimeCapsulePayload,
)
from timecapsule.store import CapsuleDB
from timecapsule.validation import (
    check_owner,
    check_updatable,
    validate_community_payload,
    validate_payload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    """
    Outcome of one engine operation.

    Exactly one of value and error is set.

    Attributes:
        value: The stored or returned record on success
        error: The domain error on failure
    """

    value: T | None = None
    error: CapsuleError | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: CapsuleError) -> "OperationResult[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value, raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        if self.error is not None:
            return {"ok": False, "error": self.error.to_dict()}
        value = self.value.model_dump(mode="json") if self.value is not None else None
        return {"ok": True, "value": value}


class CapsuleEngine:
    """
    Main engine for the time capsule store.

    Usage:
        engine = CapsuleEngine(identity=StaticIdentity("alice"))
        result = engine.create_time_capsule(payload)
        if result.ok:
            print(result.value.id)

    Attributes:
        config: Store bounds and behavior toggles
        db: Database holding both capsule maps
        identity: Supplies the caller for each operation
        clock: Supplies the current time
        ids: Generates capsule identifiers
        events: Receives lifecycle notifications
    """

    def __init__(
        self,
        identity: IdentityProvider,
        config: EngineConfig | None = None,
        db_path: str | Path | None = None,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        events: EventSink | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            identity: Identity provider for the invoking caller
            config: Engine configuration (defaults to EngineConfig())
            db_path: Overrides config.db_path when given
            clock: Time source (defaults to SystemClock)
            ids: Identifier generator (defaults to the OS CSPRNG)
            events: Event sink (defaults to the audit table, or a null
                sink when config.record_events is False)
        """
        self.config = config or EngineConfig()
        self.db = CapsuleDB(
            db_path if db_path is not None else self.config.db_path,
            max_key_bytes=self.config.max_key_bytes,
            max_value_bytes=self.config.max_value_bytes,
        )
        self.identity = identity
        self.clock = clock or SystemClock()
        self.ids = ids or default_id_generator()
        if events is not None:
            self.events = events
        elif self.config.record_events:
            self.events = DBEventSink(self.db)
        else:
            self.events = NullEventSink()

    def close(self) -> None:
        """Close database connection."""
        self.db.close()

    def __enter__(self) -> "CapsuleEngine":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Individual Capsules
    # =========================================================================

    def create_time_capsule(
        self, payload: TimeCapsulePayload
    ) -> OperationResult[TimeCapsule]:
        """
        Create a sealed capsule owned by the current caller.

        Returns:
            The stored capsule, or InvalidPayload if the message is too
            long or the record exceeds the storage bound
        """
        caller = self.identity.current_caller()
        try:
            validate_payload(payload, self.config.max_message_length)
            capsule = TimeCapsule(
                id=self.ids.new_id(),
                owner=caller,
                is_revealed=False,
                **payload.model_dump(),
            )
            with self.db.transaction():
                self.db.insert_capsule(capsule)
        except CapsuleError as e:
            return OperationResult.failure(e)

        logger.debug("created capsule %s for %s", capsule.id, caller)
        self._notify(EventKind.CREATED, caller, capsule.id, capsule.reveal_date)
        return OperationResult.success(capsule)

    def retrieve_time_capsule(self, capsule_id: str) -> OperationResult[TimeCapsule]:
        """
        Reveal a capsule whose reveal date has passed.

        This is the one-way reveal transition, not an idempotent read:
        the first successful call flips is_revealed, and every later call
        fails with AlreadyRevealed. Use peek_time_capsule to inspect
        state without revealing.
        """
        caller = self.identity.current_caller()
        now = self.clock.now()
        try:
            with self.db.transaction():
                capsule = self._load(capsule_id)
                if not capsule.is_revealable(now):
                    raise NotYetRevealableError(
                        capsule_id=capsule_id,
                        reveal_date=capsule.reveal_date.isoformat(),
                    )
                if capsule.is_revealed:
                    raise AlreadyRevealedError(capsule_id=capsule_id)
                revealed = capsule.model_copy(update={"is_revealed": True})
                self.db.replace_capsule(revealed)
        except CapsuleError as e:
            return OperationResult.failure(e)

        logger.debug("revealed capsule %s for %s", capsule_id, caller)
        self._notify(EventKind.REVEALED, caller, capsule_id, revealed.reveal_date)
        return OperationResult.success(revealed)

    def peek_time_capsule(self, capsule_id: str) -> OperationResult[CapsuleSnapshot]:
        """Report a capsule's reveal state without changing it."""
        now = self.clock.now()
        try:
            capsule = self._load(capsule_id)
        except CapsuleError as e:
            return OperationResult.failure(e)
        return OperationResult.success(CapsuleSnapshot.of(capsule, now))

    def update_time_capsule(
        self, capsule_id: str, payload: TimeCapsulePayload
    ) -> OperationResult[TimeCapsule]:
        """
        Overwrite a capsule's message, reveal date, and media URLs.

        Only the owner may update. id, owner, and is_revealed are kept.
        Revealed capsules stay updatable unless the engine is configured
        with allow_update_after_reveal=False.
        """
        caller = self.identity.current_caller()
        try:
            with self.db.transaction():
                capsule = self._load(capsule_id)
                check_owner(capsule, caller)
                validate_payload(payload, self.config.max_message_length, capsule_id)
                check_updatable(capsule, self.config.allow_update_after_reveal)
                updated = capsule.merged(payload)
                self.db.replace_capsule(updated)
        except CapsuleError as e:
            return OperationResult.failure(e)

        logger.debug("updated capsule %s for %s", capsule_id, caller)
        self._notify(EventKind.UPDATED, caller, capsule_id, updated.reveal_date)
        return OperationResult.success(updated)

    # =========================================================================
    # Community Capsules
    # =========================================================================

    def create_community_time_capsule(
        self, payload: CommunityTimeCapsulePayload
    ) -> OperationResult[CommunityTimeCapsule]:
        """
        Create a community capsule owned by the current caller.

        members and media are stored in the order given. Their lengths
        are only checked when enforce_member_alignment is set.
        """
        caller = self.identity.current_caller()
        try:
            validate_community_payload(payload, self.config.enforce_member_alignment)
            capsule = CommunityTimeCapsule(
                id=self.ids.new_id(),
                reveal_date=payload.reveal_date,
                owner=caller,
                is_revealed=False,
                members=payload.members,
                member_media=payload.media,
            )
            with self.db.transaction():
                self.db.insert_community_capsule(capsule)
        except CapsuleError as e:
            return OperationResult.failure(e)

        logger.debug(
            "created community capsule %s for %s with %d members",
            capsule.id,
            caller,
            len(capsule.members),
        )
        self._notify(EventKind.CREATED, caller, capsule.id, capsule.reveal_date)
        return OperationResult.success(capsule)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load(self, capsule_id: str) -> TimeCapsule:
        capsule = self.db.get_capsule(capsule_id)
        if capsule is None:
            raise CapsuleNotFoundError(capsule_id=capsule_id)
        return capsule

    def _notify(
        self,
        kind: EventKind,
        caller: str,
        capsule_id: str,
        reveal_date: datetime,
    ) -> None:
        """Deliver an event. The mutation is already committed."""
        try:
            self.events.notify(kind, caller, capsule_id, reveal_date)
        except Exception:
            logger.warning(
                "event sink failed for %s on capsule %s",
                kind.value,
                capsule_id,
                exc_info=True,
            )
