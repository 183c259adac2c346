"""Protocol definition for the profile store."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from ..core.types import Key, Prefix, ProfileMeta, ProfileMetaByTarget, Timestamp, TimeWindow


@runtime_checkable
class ProfileStore(Protocol):
    """Public API for the time-indexed profile metadata store."""

    def insert(self, prefix: Prefix, record: ProfileMeta, at: Timestamp | None = None) -> Key:
        """Store record under a fresh key at the current (or given) time."""
        ...

    def scan(self, prefix: Prefix, window: TimeWindow, reverse: bool = False) -> Iterator[ProfileMeta]:
        """Lazily yield records inserted under prefix inside window."""
        ...

    def scan_items(
        self, prefix: Prefix, window: TimeWindow, reverse: bool = False
    ) -> Iterator[tuple[Key, ProfileMeta]]:
        """Lazily yield (key, record) pairs inserted under prefix inside window."""
        ...

    def read_target(self, target: str, window: TimeWindow) -> ProfileMetaByTarget:
        """Collect all records for target inside window."""
        ...

    def drop_all(self) -> None:
        """Remove all records (administrative)."""
        ...
