"""
Unit tests for schema models.

Tests cover:
- Timestamp normalization to UTC
- Field merge for updates
- Snapshots that never expose content
- Community capsule pairing of members and media
- Configuration loading from YAML
"""

from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from timecapsule.schema import (
    CapsuleSnapshot,
    CommunityEntry,
    CommunityTimeCapsule,
    CommunityTimeCapsulePayload,
    EngineConfig,
    Media,
    TimeCapsule,
    TimeCapsulePayload,
    load_community_payload,
    load_config,
    load_config_from_string,
)


def _capsule(**overrides) -> TimeCapsule:
    fields = {
        "id": "c-1",
        "message": "hello",
        "reveal_date": datetime(2030, 1, 1, tzinfo=UTC),
        "owner": "alice",
    }
    fields.update(overrides)
    return TimeCapsule(**fields)


class TestTimestamps:
    def test_naive_is_read_as_utc(self) -> None:
        payload = TimeCapsulePayload(message="x", reveal_date=datetime(2030, 1, 1))
        assert payload.reveal_date.tzinfo is not None
        assert payload.reveal_date == datetime(2030, 1, 1, tzinfo=UTC)

    def test_offset_is_converted_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        capsule = _capsule(reveal_date=datetime(2030, 1, 1, 2, 0, tzinfo=plus_two))
        assert capsule.reveal_date == datetime(2030, 1, 1, 0, 0, tzinfo=UTC)
        assert capsule.reveal_date.utcoffset() == timedelta(0)

    def test_iso_string_accepted(self) -> None:
        payload = TimeCapsulePayload(message="x", reveal_date="2030-01-01T00:00:00Z")
        assert payload.reveal_date == datetime(2030, 1, 1, tzinfo=UTC)


class TestTimeCapsule:
    def test_defaults(self) -> None:
        capsule = _capsule()
        assert capsule.is_revealed is False
        assert capsule.image_url is None
        assert capsule.video_url is None

    def test_frozen(self) -> None:
        capsule = _capsule()
        with pytest.raises(ValidationError):
            capsule.is_revealed = True

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _capsule(color="blue")

    def test_is_revealable_boundary(self) -> None:
        capsule = _capsule()
        reveal = capsule.reveal_date
        assert not capsule.is_revealable(reveal - timedelta(microseconds=1))
        assert capsule.is_revealable(reveal)
        assert capsule.is_revealable(reveal + timedelta(days=1))

    def test_merged_overwrites_payload_fields(self) -> None:
        capsule = _capsule(is_revealed=True, image_url="https://old/img.png")
        payload = TimeCapsulePayload(
            message="new",
            reveal_date=datetime(2031, 6, 1, tzinfo=UTC),
            video_url="https://new/vid.mp4",
        )
        merged = capsule.merged(payload)
        assert merged.id == "c-1"
        assert merged.owner == "alice"
        assert merged.is_revealed is True
        assert merged.message == "new"
        assert merged.reveal_date == datetime(2031, 6, 1, tzinfo=UTC)
        assert merged.image_url is None
        assert merged.video_url == "https://new/vid.mp4"


class TestCapsuleSnapshot:
    def test_snapshot_has_no_content(self) -> None:
        snapshot = CapsuleSnapshot.of(_capsule(), datetime(2029, 1, 1, tzinfo=UTC))
        dumped = snapshot.model_dump()
        assert "message" not in dumped
        assert "image_url" not in dumped
        assert snapshot.revealable is False

    def test_revealable_once_date_passed(self) -> None:
        snapshot = CapsuleSnapshot.of(_capsule(), datetime(2031, 1, 1, tzinfo=UTC))
        assert snapshot.revealable is True

    def test_not_revealable_when_already_revealed(self) -> None:
        snapshot = CapsuleSnapshot.of(
            _capsule(is_revealed=True), datetime(2031, 1, 1, tzinfo=UTC)
        )
        assert snapshot.is_revealed is True
        assert snapshot.revealable is False


class TestCommunityCapsule:
    def test_from_entries_is_aligned(self) -> None:
        payload = CommunityTimeCapsulePayload.from_entries(
            datetime(2030, 1, 1, tzinfo=UTC),
            [("alice", Media(message="hi")), ("bob", Media(photo_url="p.jpg"))],
        )
        assert payload.members == ["alice", "bob"]
        assert payload.media == [Media(message="hi"), Media(photo_url="p.jpg")]

    def test_entries_pad_shorter_side(self) -> None:
        capsule = CommunityTimeCapsule(
            id="cc-1",
            reveal_date=datetime(2030, 1, 1, tzinfo=UTC),
            owner="alice",
            members=["A", "B"],
            member_media=[Media(message="m1")],
        )
        assert capsule.is_aligned is False
        assert capsule.entries == [
            CommunityEntry(member="A", media=Media(message="m1")),
            CommunityEntry(member="B", media=None),
        ]

    def test_media_fields_all_optional(self) -> None:
        media = Media()
        assert media.message is None
        assert media.photo_url is None
        assert media.video_url is None


class TestConfig:
    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.max_message_length == 100
        assert config.max_key_bytes == 44
        assert config.max_value_bytes == 1024
        assert config.allow_update_after_reveal is True
        assert config.enforce_member_alignment is False
        assert config.record_events is True

    def test_load_from_string(self) -> None:
        config = load_config_from_string(
            """
max_message_length: 50
allow_update_after_reveal: false
"""
        )
        assert config.max_message_length == 50
        assert config.allow_update_after_reveal is False

    def test_empty_yaml_gives_defaults(self) -> None:
        assert load_config_from_string("") == EngineConfig()

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            load_config_from_string("gas_estimate: 5")

    def test_load_from_file(self, temp_dir: Path) -> None:
        path = temp_dir / "config.yaml"
        path.write_text("db_path: capsules.db\nrecord_events: false\n")
        config = load_config(path)
        assert config.db_path == Path("capsules.db")
        assert config.record_events is False


class TestCommunityPayloadLoading:
    def test_load_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "community.yaml"
        path.write_text(
            """
reveal_date: 2030-01-01T00:00:00Z
members: [alice, bob]
media:
  - {message: hi}
"""
        )
        payload = load_community_payload(path)
        assert payload.members == ["alice", "bob"]
        assert payload.media == [Media(message="hi")]
        assert payload.reveal_date == datetime(2030, 1, 1, tzinfo=UTC)

    def test_load_json(self, temp_dir: Path) -> None:
        path = temp_dir / "community.json"
        path.write_text(
            '{"reveal_date": "2030-01-01T00:00:00+00:00", "members": ["a"], '
            '"media": [{"video_url": "v.mp4"}]}'
        )
        payload = load_community_payload(path)
        assert payload.media[0].video_url == "v.mp4"
