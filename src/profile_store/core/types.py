"""Common type definitions for the profile store.

Defines fundamental types used across all components.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Core primitive types
Key = bytes
Value = bytes
Timestamp = int  # milliseconds since the Unix epoch
Version = int  # engine commit version
Prefix = bytes | str
Mutation = tuple[Key, Value]
WALRecord = tuple[int, Version, list[Mutation]]  # (op, version, mutations)


@dataclass(frozen=True)
class ProfileMeta:
    """Metadata describing one profiling sample.

    Attributes:
        profile_id: Identifier of the stored profile (unsigned 64-bit)
        timestamp: Sample time in milliseconds since the epoch
        duration: Sample duration in nanoseconds (signed 64-bit)
        sample_type: Sample type tag, e.g. "alloc_objects"
        sample_type_unit: Unit tag, e.g. "count"
    """

    profile_id: int
    timestamp: int
    duration: int
    sample_type: str
    sample_type_unit: str

    def encode(self) -> bytes:
        """Encode this record with the canonical record codec."""
        from ..components.record import encode_record

        return encode_record(self)

    @classmethod
    def decode(cls, data: bytes) -> ProfileMeta:
        """Decode a record produced by encode()."""
        from ..components.record import decode_record

        return decode_record(data)


@dataclass
class ProfileMetaByTarget:
    """All profile metadata scanned for one target."""

    target_name: str
    profile_metas: list[ProfileMeta] = field(default_factory=list)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive time range [start, end] in milliseconds used to bound scans."""

    start: Timestamp
    end: Timestamp

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    def __contains__(self, ts: Timestamp) -> bool:
        return self.start <= ts <= self.end

    def to_keys(self, prefix: Prefix) -> tuple[Key, Key]:
        """Return the (min_key, max_key) scan bounds for prefix."""
        from ..components.keys import build_key, upper_bound

        return build_key(prefix, self.start), upper_bound(prefix, self.end)
