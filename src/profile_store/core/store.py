"""Profile store implementation - main public API.

Orchestrates sequence allocation, key construction, record encoding and
the key-value engine.
"""

from __future__ import annotations
import time
import logging
from typing import Callable, Iterator
from .types import Key, Prefix, ProfileMeta, ProfileMetaByTarget, Timestamp, TimeWindow
from .config import StoreConfig
from .errors import AllocationError
from ..components.engine import SimpleKVEngine
from ..components.keys import build_insert_key, compare_key
from ..components.record import decode_record, encode_record
from ..components.sequence import SequenceAllocator
from ..interfaces.engine import OrderedKVEngine

logger = logging.getLogger(__name__)


def current_millis() -> Timestamp:
    """Wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class RangeStore:
    """Time-indexed store of ProfileMeta records.

    Args:
        engine: Ordered key-value engine
        allocator: Sequence allocator sharing the engine
        clock: Returns the current time in milliseconds
        owns_engine: Close the engine when the store is closed

    Public API:
        - insert(prefix, record): Store record under a fresh time-ordered key
        - scan(prefix, window): Lazily yield records inserted inside window
        - scan_items(prefix, window): Same, with their keys
        - read_target(target, window): Collect a scan into ProfileMetaByTarget
        - drop_all(): Remove all records
        - close(): Release leases and engine

    Invariants:
        - Each insert is one engine transaction
        - Keys under one prefix never collide
        - Scans yield records in key order and never skip undecodable values
    """

    def __init__(
        self,
        engine: OrderedKVEngine,
        allocator: SequenceAllocator | None = None,
        clock: Callable[[], Timestamp] = current_millis,
        owns_engine: bool = False,
    ):
        self._engine = engine
        self._allocator = allocator if allocator is not None else SequenceAllocator(engine)
        self._clock = clock
        self._owns_engine = owns_engine

    @classmethod
    def open(
        cls, config: StoreConfig, clock: Callable[[], Timestamp] = current_millis
    ) -> RangeStore:
        """Open engine and allocator for config and return a store owning them."""
        engine = SimpleKVEngine(config)
        allocator = SequenceAllocator(engine, batch_size=config.sequence_batch_size)
        logger.info(f"Opened profile store at {config.data_dir}")
        return cls(engine, allocator, clock=clock, owns_engine=True)

    @property
    def engine(self) -> OrderedKVEngine:
        return self._engine

    @property
    def allocator(self) -> SequenceAllocator:
        return self._allocator

    def insert(self, prefix: Prefix, record: ProfileMeta, at: Timestamp | None = None) -> Key:
        """Store record under prefix.

        Args:
            prefix: Logical partition (target or encoding family)
            record: Record to store
            at: Insertion time in ms; defaults to the store clock

        Returns:
            The key the record was written under

        Raises:
            AllocationError: If no sequence could be allocated
            EngineError: If the write transaction fails
        """
        value = encode_record(record)
        seq = self._allocator.next(prefix)
        key = build_insert_key(prefix, self._clock() if at is None else at, seq)

        with self._engine.begin(write=True) as txn:
            txn.set(key, value)

        logger.debug(f"Inserted profile {record.profile_id} under {key!r}")
        return key

    def scan_items(
        self, prefix: Prefix, window: TimeWindow, reverse: bool = False
    ) -> Iterator[tuple[Key, ProfileMeta]]:
        """Yield (key, record) for records inserted under prefix inside window.

        Args:
            prefix: Partition to scan
            window: Inclusive insertion-time bounds
            reverse: Yield most recent first

        Raises:
            EngineError: If the engine fails mid-scan
            MalformedRecord: If a stored value cannot be decoded
        """
        min_key, max_key = window.to_keys(prefix)
        start, bound = (max_key, min_key) if reverse else (min_key, max_key)

        txn = self._engine.begin(write=False)
        it = None
        try:
            it = txn.iterator(reverse=reverse)
            it.seek(start)
            while it.valid():
                key = it.key()
                if not compare_key(key, bound, reverse=reverse):
                    break
                yield key, decode_record(it.value())
                it.next()
        finally:
            if it is not None:
                it.close()
            txn.discard()

    def scan(
        self, prefix: Prefix, window: TimeWindow, reverse: bool = False
    ) -> Iterator[ProfileMeta]:
        """Yield records inserted under prefix inside window, in key order.

        An empty prefix scans only records inserted with the empty prefix;
        there is no cross-prefix scan, since time is not the leading key field.
        """
        items = self.scan_items(prefix, window, reverse=reverse)
        try:
            for _key, record in items:
                yield record
        finally:
            items.close()

    def read_target(self, target: str, window: TimeWindow) -> ProfileMetaByTarget:
        """Collect every record stored for target inside window."""
        return ProfileMetaByTarget(
            target_name=target, profile_metas=list(self.scan(target, window))
        )

    def drop_all(self) -> None:
        """Remove all records. Sequence marks are kept.

        Scans already in progress are not isolated from the drop.
        """
        self._engine.drop_all()

    def close(self) -> None:
        """Close store and release resources."""
        logger.info("Closing profile store")
        try:
            self._allocator.close()
        except AllocationError as e:
            logger.warning(f"Failed to release sequence leases: {e}")
        finally:
            if self._owns_engine:
                self._engine.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
