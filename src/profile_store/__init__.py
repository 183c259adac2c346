"""Profile store - time-indexed profile metadata on an ordered key-value engine."""

from .core.config import StoreConfig
from .core.errors import (
    ProfileStoreError,
    EngineError,
    StorageError,
    WALCorruptionError,
    RecoveryError,
    TransactionClosedError,
    MalformedRecord,
    AllocationError,
)
from .core.store import RangeStore
from .core.types import Key, Value, Timestamp, ProfileMeta, ProfileMetaByTarget, TimeWindow
from .components.engine import SimpleKVEngine
from .components.sequence import SequenceAllocator

__all__ = [
    "StoreConfig",
    "ProfileStoreError",
    "EngineError",
    "StorageError",
    "WALCorruptionError",
    "RecoveryError",
    "TransactionClosedError",
    "MalformedRecord",
    "AllocationError",
    "RangeStore",
    "Key",
    "Value",
    "Timestamp",
    "ProfileMeta",
    "ProfileMetaByTarget",
    "TimeWindow",
    "SimpleKVEngine",
    "SequenceAllocator",
]
