"""
Storage module for the time capsule store.

This module provides SQLite-based persistence for individual capsules,
community capsules, and their lifecycle events.

Tables:
    - time_capsules: Individual capsules keyed by id
    - community_capsules: Community capsules keyed by id
    - capsule_events: Append-only lifecycle notifications

Keys are limited to 44 bytes and serialized records to 1024 bytes by
default. A record over either limit is rejected with RecordTooLargeError.
"""

from timecapsule.store.db import CapsuleDB

__all__ = [
    "CapsuleDB",
]
