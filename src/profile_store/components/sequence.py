"""Lease-based sequence allocation.

Hands out unique, increasing integers per prefix. Each prefix holds an
in-memory lease [next, limit) reserved from a durable high-water-mark, so
only one durable write is needed per batch of allocations.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ..core.errors import AllocationError, EngineError
from ..core.types import Prefix
from ..interfaces.engine import OrderedKVEngine
from .keys import prefix_bytes

logger = logging.getLogger(__name__)


@dataclass
class SequenceLease:
    """Reserved range [next, limit) of sequence numbers for one prefix."""

    next: int = 0
    limit: int = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.next


class _PrefixState:
    """Lease and the lock that serializes its use and refills."""

    def __init__(self):
        self.lock = threading.Lock()
        self.lease = SequenceLease()


class SequenceAllocator:
    """Issues collision-free integers per prefix.

    Args:
        engine: Engine holding the durable high-water-marks
        batch_size: Default number of values reserved per refill

    Invariants:
        - The durable mark is advanced before a lease is used, so values are
          unique across allocators sharing the engine and across restarts
        - A crash wastes at most batch_size - 1 values per prefix
        - A failed refill leaves the lease untouched
    """

    def __init__(self, engine: OrderedKVEngine, batch_size: int = 1000):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._engine = engine
        self.batch_size = batch_size
        self._states: dict[bytes, _PrefixState] = {}
        self._states_lock = threading.Lock()

    def _state(self, prefix: bytes) -> _PrefixState:
        """Return the state for prefix, creating it on first access."""
        with self._states_lock:
            state = self._states.get(prefix)
            if state is None:
                state = _PrefixState()
                self._states[prefix] = state
            return state

    def next(self, prefix: Prefix, batch_size: int | None = None) -> int:
        """Return a fresh integer for prefix.

        Args:
            prefix: Logical partition the sequence belongs to
            batch_size: Values to reserve if the lease must be refilled

        Raises:
            AllocationError: If the durable refill fails
        """
        if batch_size is None:
            batch_size = self.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        name = prefix_bytes(prefix)
        state = self._state(name)
        with state.lock:
            if state.lease.remaining <= 0:
                state.lease = self._refill(name, batch_size)
            value = state.lease.next
            state.lease.next += 1
            return value

    def _refill(self, name: bytes, batch_size: int) -> SequenceLease:
        """Reserve a new lease from the durable mark (must hold prefix lock)."""
        try:
            base = self._engine.advance_counter(name, batch_size)
        except EngineError as e:
            logger.error(f"Sequence refill failed for prefix {name!r}: {e}")
            raise AllocationError(f"Cannot refill sequence lease for {name!r}: {e}") from e

        logger.debug(f"Leased sequences [{base}, {base + batch_size}) for prefix {name!r}")
        return SequenceLease(next=base, limit=base + batch_size)

    def lease(self, prefix: Prefix) -> SequenceLease:
        """Return a copy of the current lease for prefix."""
        state = self._state(prefix_bytes(prefix))
        with state.lock:
            return SequenceLease(state.lease.next, state.lease.limit)

    def release(self, prefix: Prefix) -> bool:
        """Give unused lease values back to the durable mark.

        Only succeeds if no other allocator advanced the mark since this
        lease was taken.

        Returns:
            True if the mark was rewound
        """
        name = prefix_bytes(prefix)
        state = self._state(name)
        with state.lock:
            lease = state.lease
            if lease.remaining <= 0:
                return False
            try:
                released = self._engine.compare_and_set_counter(name, lease.limit, lease.next)
            except EngineError as e:
                raise AllocationError(f"Cannot release sequence lease for {name!r}: {e}") from e
            if released:
                logger.debug(f"Released sequences [{lease.next}, {lease.limit}) for prefix {name!r}")
            state.lease = SequenceLease()
            return released

    def close(self) -> None:
        """Release every outstanding lease."""
        with self._states_lock:
            prefixes = list(self._states)
        for name in prefixes:
            self.release(name)
