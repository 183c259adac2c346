"""Protocol definitions for Write-Ahead Log."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from ..core.types import Mutation, Version, WALRecord


@runtime_checkable
class WALWriter(Protocol):
    """Protocol for writing to WAL."""

    def append(self, op: int, version: Version, mutations: list[Mutation]) -> int:
        """Append a record to WAL.

        Args:
            op: Record kind (commit, counter update, drop)
            version: Engine commit version
            mutations: (key, value) pairs applied together on replay

        Returns:
            WAL sequence number

        Invariants:
            - Must be durable on return if config.wal_flush_every_write is True
            - A record is replayed entirely or not at all
        """
        ...

    def truncate(self, offset: int) -> None:
        """Drop everything after offset."""
        ...

    def sync(self) -> None:
        """Force data to disk (fsync)."""
        ...

    def close(self) -> None:
        """Close writer and release resources."""
        ...


@runtime_checkable
class WALReader(Protocol):
    """Protocol for reading from WAL."""

    def __iter__(self) -> Iterator[WALRecord]:
        """Iterate (op, version, mutations) records in append order."""
        ...

    @property
    def valid_end(self) -> int:
        """Offset just past the last complete record seen by the last replay."""
        ...


@runtime_checkable
class WriteAheadLog(WALWriter, WALReader, Protocol):
    """A WAL that is replayed on open and appended to afterwards."""
