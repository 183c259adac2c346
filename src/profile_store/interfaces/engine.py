"""Protocol definitions for the ordered key-value engine."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..core.types import Key, Value


@runtime_checkable
class KVIterator(Protocol):
    """Forward (or reverse) cursor over a read snapshot."""

    def seek(self, key: Key) -> None:
        """Position at the first key >= key (<= key when reverse)."""
        ...

    def rewind(self) -> None:
        """Position at the first key (last key when reverse)."""
        ...

    def valid(self) -> bool:
        """Return True if the cursor points at an entry."""
        ...

    def next(self) -> None:
        """Advance to the following entry."""
        ...

    def key(self) -> Key:
        """Return the current key."""
        ...

    def value(self) -> Value:
        """Return the current value."""
        ...

    def close(self) -> None:
        """Release the cursor."""
        ...


@runtime_checkable
class ReadTransaction(Protocol):
    """Read-only transaction pinned to a consistent snapshot."""

    def get(self, key: Key) -> Value | None:
        """Return the value visible in the snapshot, or None."""
        ...

    def iterator(self, reverse: bool = False, prefetch_size: int | None = None) -> KVIterator:
        """Open a cursor over the snapshot."""
        ...

    def discard(self) -> None:
        """Release the snapshot."""
        ...


@runtime_checkable
class WriteTransaction(Protocol):
    """Buffered writes applied atomically on commit."""

    def set(self, key: Key, value: Value) -> None:
        """Buffer key -> value."""
        ...

    def get(self, key: Key) -> Value | None:
        """Return the buffered value, else the committed one, else None."""
        ...

    def commit(self) -> None:
        """Durably apply every buffered write or none of them."""
        ...

    def discard(self) -> None:
        """Drop buffered writes."""
        ...


@runtime_checkable
class OrderedKVEngine(Protocol):
    """Embedded ordered key-value engine consumed by the store."""

    def begin(self, write: bool = False) -> ReadTransaction | WriteTransaction:
        """Open a transaction; read-only snapshots unless write is True."""
        ...

    def get_counter(self, name: bytes) -> int:
        """Return the durable value of counter name (0 if never set)."""
        ...

    def advance_counter(self, name: bytes, delta: int) -> int:
        """Atomically and durably add delta to counter name; return the old value."""
        ...

    def compare_and_set_counter(self, name: bytes, expected: int, new: int) -> bool:
        """Durably set counter name to new only if it still equals expected."""
        ...

    def drop_all(self) -> None:
        """Remove every key-value entry."""
        ...

    def close(self) -> None:
        """Flush and release resources."""
        ...
