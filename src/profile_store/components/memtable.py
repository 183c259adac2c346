"""In-memory sorted multi-version table.

Uses sortedcontainers.SortedDict for efficient sorted operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sortedcontainers import SortedDict

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..core.types import Key, Value, Version


class VersionedMemtable:
    """In-memory sorted structure holding every committed version of each key.

    Each key maps to a list of (version, value) pairs in ascending version
    order, so a reader pinned at a version sees the newest value committed at
    or before it.

    Invariants:
        - Keys are always maintained in sorted order
        - Versions per key are strictly increasing
        - Size includes approximate overhead of data structures
    """

    def __init__(self):
        """Initialize empty memtable."""
        self._data: SortedDict = SortedDict()
        self._size_bytes: int = 0

    def put(self, key: Key, value: Value, version: Version) -> None:
        """Add value for key as of version."""
        versions = self._data.get(key)
        if versions is None:
            versions = []
            self._data[key] = versions
            self._size_bytes += len(key)
        elif versions[-1][0] >= version:
            raise ValueError(
                f"Version {version} is not newer than {versions[-1][0]} for key {key!r}"
            )
        versions.append((version, value))
        self._size_bytes += len(value) + 8  # value + version

    def get(self, key: Key, version: Version) -> Value | None:
        """Return the value of key visible at version, or None."""
        versions = self._data.get(key)
        if versions is None:
            return None
        return self._visible(versions, version)

    @staticmethod
    def _visible(versions: list[tuple[Version, Value]], version: Version) -> Value | None:
        for v, value in reversed(versions):
            if v <= version:
                return value
        return None

    def iter_from(
        self,
        start: Key | None,
        version: Version,
        reverse: bool = False,
        inclusive: bool = True,
    ) -> Iterator[tuple[Key, Value]]:
        """Iterate (key, value) pairs visible at version, starting at start.

        Args:
            start: Seek key, or None for the first (last when reverse) key
            version: Snapshot version
            reverse: Iterate in descending key order
            inclusive: Whether start itself may be returned
        """
        if start is None:
            keys = self._data.irange(reverse=reverse)
        elif reverse:
            keys = self._data.irange(maximum=start, inclusive=(True, inclusive), reverse=True)
        else:
            keys = self._data.irange(minimum=start, inclusive=(inclusive, True))

        for key in keys:
            value = self._visible(self._data[key], version)
            if value is not None:
                yield (key, value)

    def clear(self) -> None:
        """Remove all entries."""
        self._data.clear()
        self._size_bytes = 0

    def size_bytes(self) -> int:
        """Return approximate memory usage in bytes."""
        # Add overhead for SortedDict structure (rough estimate)
        overhead = len(self._data) * 32  # approximate per-entry overhead
        return self._size_bytes + overhead

    def __len__(self) -> int:
        return len(self._data)
