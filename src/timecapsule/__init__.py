"""
Timecapsule - Persistent store for messages sealed until a future date.

A caller deposits a message (or, for groups, each member's media) that
can only be revealed once its reveal date has passed. It provides:
- A one-way reveal per capsule
- Owner-only updates
- Community capsules that pair members with their media
- An audit trail of lifecycle events in SQLite

Example usage:
    $ timecapsule create -m "hello" --reveal-at 2030-01-01T00:00:00 --as alice
    $ timecapsule peek <capsule_id>
    $ timecapsule retrieve <capsule_id> --as alice
"""

__version__ = "0.1.0"
__author__ = "Timecapsule Contributors"

__all__ = [
    "__version__",
    "__author__",
]
