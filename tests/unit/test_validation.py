"""
Unit tests for payload and ownership checks.
"""

from datetime import UTC, datetime

import pytest

from timecapsule.errors import (
    AlreadyRevealedError,
    InvalidPayloadError,
    UnauthorizedError,
)
from timecapsule.schema import (
    CommunityTimeCapsulePayload,
    Media,
    TimeCapsule,
    TimeCapsulePayload,
)
from timecapsule.validation import (
    check_owner,
    check_updatable,
    validate_community_payload,
    validate_message,
    validate_payload,
)

REVEAL = datetime(2030, 1, 1, tzinfo=UTC)


def _capsule(is_revealed: bool = False) -> TimeCapsule:
    return TimeCapsule(
        id="c-1",
        message="hi",
        reveal_date=REVEAL,
        owner="alice",
        is_revealed=is_revealed,
    )


class TestMessageLength:
    def test_limit_is_inclusive(self) -> None:
        validate_message("x" * 100, 100)

    def test_over_limit_rejected(self) -> None:
        with pytest.raises(InvalidPayloadError) as exc_info:
            validate_message("x" * 101, 100, capsule_id="c-1")
        assert exc_info.value.field_name == "message"
        assert exc_info.value.context["capsule_id"] == "c-1"

    def test_counts_characters_not_bytes(self) -> None:
        validate_message("é" * 100, 100)

    def test_payload_check(self) -> None:
        with pytest.raises(InvalidPayloadError):
            validate_payload(TimeCapsulePayload(message="x" * 11, reveal_date=REVEAL), 10)


class TestCommunityPayload:
    def test_mismatch_allowed_by_default(self) -> None:
        payload = CommunityTimeCapsulePayload(
            reveal_date=REVEAL, members=["A", "B"], media=[Media()]
        )
        validate_community_payload(payload, enforce_alignment=False)

    def test_mismatch_rejected_when_enforced(self) -> None:
        payload = CommunityTimeCapsulePayload(
            reveal_date=REVEAL, members=["A", "B"], media=[Media()]
        )
        with pytest.raises(InvalidPayloadError, match="2 members but 1 media"):
            validate_community_payload(payload, enforce_alignment=True)


class TestOwnership:
    def test_owner_passes(self) -> None:
        check_owner(_capsule(), "alice")

    def test_other_caller_rejected(self) -> None:
        with pytest.raises(UnauthorizedError) as exc_info:
            check_owner(_capsule(), "bob")
        assert exc_info.value.caller == "bob"


class TestUpdatable:
    def test_sealed_always_updatable(self) -> None:
        check_updatable(_capsule(), allow_after_reveal=False)

    def test_revealed_updatable_when_allowed(self) -> None:
        check_updatable(_capsule(is_revealed=True), allow_after_reveal=True)

    def test_revealed_rejected_when_disallowed(self) -> None:
        with pytest.raises(AlreadyRevealedError):
            check_updatable(_capsule(is_revealed=True), allow_after_reveal=False)
