"""Exception hierarchy for the profile store.

Defines all custom exceptions used throughout the implementation.
"""

from __future__ import annotations


class ProfileStoreError(Exception):
    """Base exception for all profile store errors."""
    pass


class EngineError(ProfileStoreError):
    """Raised when the underlying key-value engine fails (I/O or transaction)."""
    pass


# Name used by callers of RangeStore.insert / RangeStore.scan
StorageError = EngineError


class WALCorruptionError(EngineError):
    """Raised when WAL data is corrupted or invalid."""
    pass


class RecoveryError(EngineError):
    """Raised when recovery from persistent state fails."""
    pass


class TransactionClosedError(EngineError):
    """Raised when a committed or discarded transaction is used again."""
    pass


class MalformedRecord(ProfileStoreError):
    """Raised when stored bytes do not decode to a ProfileMeta."""
    pass


class AllocationError(ProfileStoreError):
    """Raised when a sequence lease cannot be refilled from durable storage."""
    pass
