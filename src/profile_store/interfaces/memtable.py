"""Protocol definition for Memtable."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..core.types import Key, Value, Version


@runtime_checkable
class Memtable(Protocol):
    """In-memory sorted structure holding versioned writes."""

    def put(self, key: Key, value: Value, version: Version) -> None:
        """Add value for key as of version (newer than any existing one)."""
        ...

    def get(self, key: Key, version: Version) -> Value | None:
        """Return the value of key visible at version, or None."""
        ...

    def iter_from(
        self,
        start: Key | None,
        version: Version,
        reverse: bool = False,
        inclusive: bool = True,
    ) -> Iterator[tuple[Key, Value]]:
        """Iterate entries visible at version in key order from start."""
        ...

    def size_bytes(self) -> int:
        """Return approximate memory usage in bytes."""
        ...

    def clear(self) -> None:
        """Clear all entries."""
        ...

    def __len__(self) -> int:
        """Return number of distinct keys."""
        ...
