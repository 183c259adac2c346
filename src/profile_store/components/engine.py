"""Embedded ordered key-value engine.

Orchestrates the versioned memtable and the WAL behind a small transaction
API: buffered write transactions with atomic commit, snapshot read
transactions with forward/reverse iterators, and durable counters.
"""

from __future__ import annotations

import logging
import struct
import threading
from collections import deque
from itertools import islice
from pathlib import Path

from ..core.config import StoreConfig
from ..core.errors import EngineError, RecoveryError, TransactionClosedError
from ..core.types import Key, Mutation, Value, Version
from ..interfaces.memtable import Memtable
from ..interfaces.wal import WriteAheadLog
from .memtable import VersionedMemtable
from .wal import OP_COMMIT, OP_COUNTER, OP_DROP_ALL, SimpleWAL

logger = logging.getLogger(__name__)

_COUNTER = struct.Struct("<Q")


class SimpleKVEngine:
    """Ordered key-value engine with MVCC snapshots and WAL durability.

    Args:
        config: Store configuration (data_dir, WAL and prefetch settings)

    Public API:
        - begin(write): Open a read snapshot or a write transaction
        - get_counter / advance_counter / compare_and_set_counter: Durable counters
        - drop_all(): Remove every key-value entry (counters are kept)
        - close(): Flush WAL and release resources

    Invariants:
        - Every commit is one WAL record, written before it becomes visible
        - Commit versions are strictly increasing
        - A read transaction only sees commits with version <= its snapshot
        - Counters live outside the key space and never show up in iterators
    """

    def __init__(self, config: StoreConfig):
        self.config = config
        self.data_dir = Path(config.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._memtable: Memtable = VersionedMemtable()
        self._counters: dict[bytes, int] = {}
        self._version: Version = 0
        self._closed = False

        self._wal: WriteAheadLog = SimpleWAL(
            self.data_dir / config.wal_filename,
            flush_every_write=config.wal_flush_every_write,
        )

        self._recover()

        logger.info(f"Initialized KV engine at {self.data_dir}")

    def _recover(self) -> None:
        """Rebuild memtable and counters from the WAL."""
        logger.info("Starting recovery from WAL...")

        try:
            count = 0
            for op, version, mutations in self._wal:
                if op == OP_COMMIT:
                    for key, value in mutations:
                        self._memtable.put(key, value, version)
                    self._version = max(self._version, version)
                elif op == OP_COUNTER:
                    for name, raw in mutations:
                        self._counters[name] = _COUNTER.unpack(raw)[0]
                elif op == OP_DROP_ALL:
                    self._memtable.clear()
                count += 1

            # Anything past the last complete record is a torn tail
            self._wal.truncate(self._wal.valid_end)

            logger.info(
                f"Recovered {count} WAL records, {len(self._memtable)} keys, "
                f"{len(self._counters)} counters"
            )
        except Exception as e:
            self._wal.close()
            raise RecoveryError(f"Failed to recover from WAL: {e}") from e

    def _check_open(self) -> None:
        if self._closed:
            raise EngineError("Engine is closed")

    def _append(self, op: int, version: Version, mutations: list[Mutation]) -> None:
        """Append to the WAL (must hold lock)."""
        try:
            self._wal.append(op, version, mutations)
        except (OSError, RuntimeError) as e:
            logger.error(f"WAL append failed: {e}")
            raise EngineError(f"WAL append failed: {e}") from e

    def begin(self, write: bool = False) -> SimpleReadTransaction | SimpleWriteTransaction:
        """Open a transaction.

        Args:
            write: Open a write transaction instead of a read-only snapshot
        """
        with self._lock:
            self._check_open()
            if write:
                return SimpleWriteTransaction(self, self._version)
            return SimpleReadTransaction(self, self._version)

    def _commit(self, writes: dict[Key, Value]) -> Version:
        """Durably apply writes as one new version."""
        with self._lock:
            self._check_open()
            if not writes:
                return self._version

            version = self._version + 1
            self._append(OP_COMMIT, version, list(writes.items()))
            for key, value in writes.items():
                self._memtable.put(key, value, version)
            self._version = version
            return version

    def _get(self, key: Key, version: Version) -> Value | None:
        with self._lock:
            self._check_open()
            return self._memtable.get(key, version)

    def _read_chunk(
        self,
        start: Key | None,
        version: Version,
        reverse: bool,
        inclusive: bool,
        limit: int,
    ) -> list[tuple[Key, Value]]:
        """Return up to limit visible entries from start."""
        with self._lock:
            self._check_open()
            entries = self._memtable.iter_from(start, version, reverse=reverse, inclusive=inclusive)
            return list(islice(entries, limit))

    def get_counter(self, name: bytes) -> int:
        """Return the durable value of counter name (0 if never set)."""
        with self._lock:
            self._check_open()
            return self._counters.get(name, 0)

    def advance_counter(self, name: bytes, delta: int) -> int:
        """Atomically and durably add delta to counter name.

        Returns:
            Counter value before the advance
        """
        if delta < 1:
            raise ValueError(f"Counter delta must be positive, got {delta}")

        with self._lock:
            self._check_open()
            old = self._counters.get(name, 0)
            new = old + delta
            self._append(OP_COUNTER, self._version, [(name, _COUNTER.pack(new))])
            self._counters[name] = new
            logger.debug(f"Advanced counter {name!r}: {old} -> {new}")
            return old

    def compare_and_set_counter(self, name: bytes, expected: int, new: int) -> bool:
        """Durably set counter name to new if it still equals expected."""
        with self._lock:
            self._check_open()
            if self._counters.get(name, 0) != expected:
                return False
            self._append(OP_COUNTER, self._version, [(name, _COUNTER.pack(new))])
            self._counters[name] = new
            logger.debug(f"Set counter {name!r}: {expected} -> {new}")
            return True

    def drop_all(self) -> None:
        """Remove every key-value entry; counters are kept.

        Not snapshot-safe: the table is cleared in place, so read
        transactions and iterators opened earlier see an empty table
        afterwards (an iterator may still yield entries from the chunk it
        already fetched).
        """
        with self._lock:
            self._check_open()
            self._append(OP_DROP_ALL, self._version, [])
            self._memtable.clear()
            logger.info("Dropped all entries")

    def close(self) -> None:
        """Close engine and release resources."""
        with self._lock:
            if self._closed:
                return
            logger.info("Closing KV engine")
            self._closed = True
            self._wal.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SimpleReadTransaction:
    """Read-only view of the engine pinned at one commit version."""

    def __init__(self, engine: SimpleKVEngine, version: Version):
        self._engine = engine
        self.version = version
        self._done = False

    def _check_active(self) -> None:
        if self._done:
            raise TransactionClosedError("Read transaction already discarded")

    def get(self, key: Key) -> Value | None:
        self._check_active()
        return self._engine._get(key, self.version)

    def iterator(self, reverse: bool = False, prefetch_size: int | None = None) -> SimpleIterator:
        """Open a cursor over this snapshot.

        Args:
            reverse: Iterate in descending key order
            prefetch_size: Entries fetched per engine lock acquisition
        """
        self._check_active()
        if prefetch_size is None:
            prefetch_size = self._engine.config.scan_prefetch_size
        return SimpleIterator(self, reverse=reverse, prefetch_size=prefetch_size)

    def discard(self) -> None:
        self._done = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.discard()
        return False


class SimpleWriteTransaction:
    """Buffered writes that become visible together on commit.

    Used as a context manager, the transaction commits on a clean exit and
    is discarded when the block raises.
    """

    def __init__(self, engine: SimpleKVEngine, version: Version):
        self._engine = engine
        self.version = version
        self._writes: dict[Key, Value] = {}
        self._done = False

    def _check_active(self) -> None:
        if self._done:
            raise TransactionClosedError("Write transaction already committed or discarded")

    def set(self, key: Key, value: Value) -> None:
        self._check_active()
        if not isinstance(key, (bytes, bytearray)) or not isinstance(value, (bytes, bytearray)):
            raise TypeError("Keys and values must be bytes")
        self._writes[bytes(key)] = bytes(value)

    def get(self, key: Key) -> Value | None:
        self._check_active()
        if key in self._writes:
            return self._writes[key]
        return self._engine._get(key, self.version)

    def commit(self) -> None:
        self._check_active()
        self._done = True
        self.version = self._engine._commit(self._writes)

    def discard(self) -> None:
        self._done = True
        self._writes.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._done:
            return False
        if exc_type is None:
            self.commit()
        else:
            self.discard()
        return False


class SimpleIterator:
    """Cursor over a read snapshot, fetching entries in chunks.

    The engine lock is held only while a chunk is copied out, so writers
    are never blocked for the whole scan.
    """

    def __init__(self, txn: SimpleReadTransaction, reverse: bool = False, prefetch_size: int = 10):
        if prefetch_size < 1:
            raise ValueError(f"prefetch_size must be >= 1, got {prefetch_size}")
        self._txn = txn
        self.reverse = reverse
        self.prefetch_size = prefetch_size
        self._buffer: deque[tuple[Key, Value]] = deque()
        self._current: tuple[Key, Value] | None = None
        self._exhausted = True
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise TransactionClosedError("Iterator is closed")
        self._txn._check_active()

    def _fill(self, start: Key | None, inclusive: bool) -> None:
        chunk = self._txn._engine._read_chunk(
            start, self._txn.version, self.reverse, inclusive, self.prefetch_size
        )
        self._buffer.extend(chunk)
        self._exhausted = len(chunk) < self.prefetch_size

    def _advance(self) -> None:
        if not self._buffer and not self._exhausted and self._current is not None:
            self._fill(self._current[0], inclusive=False)
        self._current = self._buffer.popleft() if self._buffer else None

    def seek(self, key: Key) -> None:
        self._check_open()
        self._buffer.clear()
        self._current = None
        self._fill(key, inclusive=True)
        self._advance()

    def rewind(self) -> None:
        self._check_open()
        self._buffer.clear()
        self._current = None
        self._fill(None, inclusive=True)
        self._advance()

    def valid(self) -> bool:
        return not self._closed and self._current is not None

    def next(self) -> None:
        self._check_open()
        if self._current is None:
            raise EngineError("Iterator is not positioned on an entry")
        self._advance()

    def key(self) -> Key:
        self._check_open()
        if self._current is None:
            raise EngineError("Iterator is not positioned on an entry")
        return self._current[0]

    def value(self) -> Value:
        self._check_open()
        if self._current is None:
            raise EngineError("Iterator is not positioned on an entry")
        return self._current[1]

    def close(self) -> None:
        self._closed = True
        self._buffer.clear()
        self._current = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
