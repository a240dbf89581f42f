"""
Stateless checks applied before any mutation.

Each check raises a CapsuleError subclass on failure and returns None
otherwise. CapsuleEngine runs them before touching the store.
"""

from timecapsule.errors import (
    AlreadyRevealedError,
    InvalidPayloadError,
    UnauthorizedError,
)
from timecapsule.schema import (
    CommunityTimeCapsulePayload,
    TimeCapsule,
    TimeCapsulePayload,
)


def validate_message(message: str, max_length: int, capsule_id: str = "") -> None:
    """Reject messages longer than max_length characters."""
    if len(message) > max_length:
        raise InvalidPayloadError(
            capsule_id=capsule_id,
            field_name="message",
            reason=f"message is {len(message)} characters, limit is {max_length}",
            suggestion=f"Shorten the message to {max_length} characters or fewer",
        )


def validate_payload(
    payload: TimeCapsulePayload,
    max_message_length: int,
    capsule_id: str = "",
) -> None:
    """Shape checks for a create or update payload."""
    validate_message(payload.message, max_message_length, capsule_id)


def validate_community_payload(
    payload: CommunityTimeCapsulePayload,
    enforce_alignment: bool,
) -> None:
    """
    Shape checks for a community payload.

    With enforce_alignment off, mismatched members and media pass
    through and are stored as given.
    """
    if enforce_alignment and len(payload.members) != len(payload.media):
        raise InvalidPayloadError(
            field_name="media",
            reason=(
                f"{len(payload.members)} members but {len(payload.media)} media entries"
            ),
            suggestion="Provide exactly one media entry per member",
        )


def check_owner(capsule: TimeCapsule, caller: str) -> None:
    """Only the owner may modify a capsule."""
    if caller != capsule.owner:
        raise UnauthorizedError(capsule_id=capsule.id, caller=caller)


def check_updatable(capsule: TimeCapsule, allow_after_reveal: bool) -> None:
    """Refuse updates to revealed capsules unless configured to allow them."""
    if capsule.is_revealed and not allow_after_reveal:
        raise AlreadyRevealedError(
            capsule_id=capsule.id,
            message="This capsule has already been revealed and can no longer be updated",
        )
