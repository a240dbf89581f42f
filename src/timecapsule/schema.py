"""
Schema definitions for the time capsule store.

This module defines all the Pydantic models used throughout the store:
- TimeCapsule/TimeCapsulePayload: Individual capsules and their inputs
- Media/CommunityTimeCapsule: Multi-member captures under one reveal date
- CapsuleSnapshot: Read-only view that never exposes content
- EngineConfig: Store bounds and behavior toggles, loadable from YAML

Design Decisions:
    - Stored records are frozen; updates produce a new record
    - Timestamps are timezone-aware UTC; naive input is read as UTC
    - Media URLs are opaque strings, never validated or fetched
"""

from datetime import UTC, datetime
from itertools import zip_longest
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# =============================================================================
# Individual Capsules
# =============================================================================


class TimeCapsulePayload(BaseModel):
    """
    Input for creating or updating an individual capsule.

    Message length is checked by the engine against the configured
    limit, not here, so an over-long payload yields InvalidPayload
    instead of a pydantic ValidationError.

    Attributes:
        message: Content sealed until the reveal date
        reveal_date: When the capsule may be revealed
        image_url: Optional URL of an image
        video_url: Optional URL of a video
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: str = Field(..., description="Content sealed until the reveal date")
    reveal_date: datetime = Field(..., description="When the capsule may be revealed")
    image_url: str | None = Field(default=None, description="Optional image URL")
    video_url: str | None = Field(default=None, description="Optional video URL")

    @field_validator("reveal_date")
    @classmethod
    def normalize_reveal_date(cls, v: datetime) -> datetime:
        return _as_utc(v)


class TimeCapsule(BaseModel):
    """
    A stored individual capsule.

    is_revealed moves from False to True at most once, and only once the
    clock has reached reveal_date. id and owner never change.

    Attributes:
        id: Unique identifier, generated at creation
        message: Sealed content
        reveal_date: When the capsule may be revealed
        owner: Identity of the creator
        is_revealed: Whether the one-time reveal has happened
        image_url: Optional image URL
        video_url: Optional video URL
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., description="Unique identifier")
    message: str = Field(..., description="Sealed content")
    reveal_date: datetime = Field(..., description="When the capsule may be revealed")
    owner: str = Field(..., description="Identity of the creator")
    is_revealed: bool = Field(default=False, description="Whether it was revealed")
    image_url: str | None = Field(default=None, description="Optional image URL")
    video_url: str | None = Field(default=None, description="Optional video URL")

    @field_validator("reveal_date")
    @classmethod
    def normalize_reveal_date(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def is_revealable(self, now: datetime) -> bool:
        """Whether the reveal date has been reached at the given time."""
        return _as_utc(now) >= self.reveal_date

    def merged(self, payload: TimeCapsulePayload) -> "TimeCapsule":
        """Overwrite the payload fields, keeping id, owner and is_revealed."""
        return self.model_copy(update=payload.model_dump())


class CapsuleSnapshot(BaseModel):
    """
    Read-only view of a capsule's state.

    Returned by peek, which never reveals. Carries no message or media.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    owner: str
    reveal_date: datetime
    is_revealed: bool
    revealable: bool = Field(..., description="Whether a reveal would succeed now")

    @classmethod
    def of(cls, capsule: TimeCapsule, now: datetime) -> "CapsuleSnapshot":
        """Build a snapshot of a capsule as seen at the given time."""
        return cls(
            id=capsule.id,
            owner=capsule.owner,
            reveal_date=capsule.reveal_date,
            is_revealed=capsule.is_revealed,
            revealable=capsule.is_revealable(now) and not capsule.is_revealed,
        )


# =============================================================================
# Community Capsules
# =============================================================================


class Media(BaseModel):
    """Media contributed by one member. All fields are optional."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: str | None = None
    photo_url: str | None = None
    video_url: str | None = None


class CommunityEntry(BaseModel):
    """
    One member paired with their media.

    Either side is None when the stored sequences differ in length.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    member: str | None = None
    media: Media | None = None


class CommunityTimeCapsulePayload(BaseModel):
    """
    Input for creating a community capsule.

    members and media are taken verbatim. Prefer from_entries, which
    keeps media at index i tied to the member at index i.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    reveal_date: datetime = Field(..., description="When the capsule may be revealed")
    members: list[str] = Field(default_factory=list, description="Member identities")
    media: list[Media] = Field(default_factory=list, description="Media per member")

    @field_validator("reveal_date")
    @classmethod
    def normalize_reveal_date(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @classmethod
    def from_entries(
        cls,
        reveal_date: datetime,
        entries: list[tuple[str, Media]],
    ) -> "CommunityTimeCapsulePayload":
        """Build an aligned payload from (member, media) pairs."""
        return cls(
            reveal_date=reveal_date,
            members=[member for member, _ in entries],
            media=[media for _, media in entries],
        )


class CommunityTimeCapsule(BaseModel):
    """
    A stored community capsule.

    members and member_media are kept exactly as submitted, including
    when their lengths differ.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., description="Unique identifier")
    reveal_date: datetime = Field(..., description="When the capsule may be revealed")
    owner: str = Field(..., description="Identity of the creator")
    is_revealed: bool = Field(default=False, description="Whether it was revealed")
    members: list[str] = Field(default_factory=list, description="Member identities")
    member_media: list[Media] = Field(default_factory=list, description="Media per member")

    @field_validator("reveal_date")
    @classmethod
    def normalize_reveal_date(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def is_aligned(self) -> bool:
        """Whether every member has exactly one media entry."""
        return len(self.members) == len(self.member_media)

    @property
    def entries(self) -> list[CommunityEntry]:
        """Members paired with their media by position."""
        return [
            CommunityEntry(member=member, media=media)
            for member, media in zip_longest(self.members, self.member_media)
        ]


# =============================================================================
# Configuration
# =============================================================================


class EngineConfig(BaseModel):
    """
    Store bounds and behavior toggles.

    Attributes:
        db_path: SQLite database file
        max_message_length: Longest accepted message, in characters
        max_key_bytes: Largest identifier, in UTF-8 bytes
        max_value_bytes: Largest serialized record, in UTF-8 bytes
        allow_update_after_reveal: Whether owners may update revealed capsules
        enforce_member_alignment: Reject community payloads whose members
            and media differ in length
        record_events: Write lifecycle events to the audit table
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    db_path: Path = Field(default=Path("timecapsule.db"), description="SQLite file")
    max_message_length: int = Field(default=100, ge=0)
    max_key_bytes: int = Field(default=44, gt=0)
    max_value_bytes: int = Field(default=1024, gt=0)
    allow_update_after_reveal: bool = Field(default=True)
    enforce_member_alignment: bool = Field(default=False)
    record_events: bool = Field(default=True)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> EngineConfig:
    """
    Load engine configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return EngineConfig.model_validate(data or {})


def load_config_from_string(content: str) -> EngineConfig:
    """Load engine configuration from a YAML string."""
    data = yaml.safe_load(content)
    return EngineConfig.model_validate(data or {})


def load_community_payload(path: Path | str) -> CommunityTimeCapsulePayload:
    """Load a community capsule payload from a YAML or JSON file."""
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return CommunityTimeCapsulePayload.model_validate(data)
