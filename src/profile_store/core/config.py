"""Configuration for the profile store.

Defines all tunable parameters for the store and its embedded engine.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class StoreConfig:
    """Configuration parameters for the profile metadata store.

    Attributes:
        data_dir: Root directory for all persistent data
        sequence_batch_size: Sequence numbers reserved per durable lease refill
        wal_flush_every_write: Whether to fsync after each WAL append
        scan_prefetch_size: Entries fetched per engine lock acquisition while scanning
        wal_filename: Name of the WAL file inside data_dir
    """

    data_dir: str
    sequence_batch_size: int = 1000
    wal_flush_every_write: bool = True
    scan_prefetch_size: int = 10
    wal_filename: str = "store.wal"
