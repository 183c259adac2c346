"""Sortable key construction and comparison.

Key layout: [prefix][time (8B, big-endian, unsigned ms)][sequence (8B, big-endian)]

Fixed-width big-endian fields make byte-lexicographic order equal to
chronological order for keys sharing a prefix, with ties broken by sequence.
Pre-epoch times are not representable: the time field is unsigned.
The empty prefix is an ordinary partition of its own, not a wildcard.
"""

from __future__ import annotations

import struct

from ..core.types import Key, Prefix, Timestamp

TIME_WIDTH = 8
SEQUENCE_WIDTH = 8
MAX_TIME = 2**64 - 1
MAX_SEQUENCE = 2**64 - 1

_U64 = struct.Struct(">Q")
_MAX_SEQUENCE_BYTES = b"\xff" * SEQUENCE_WIDTH


def prefix_bytes(prefix: Prefix) -> bytes:
    """Normalize a str or bytes prefix to bytes."""
    if isinstance(prefix, str):
        return prefix.encode("utf-8")
    return bytes(prefix)


def _pack_u64(value: int, what: str, limit: int) -> bytes:
    if value < 0:
        if what == "time":
            raise ValueError(f"Pre-epoch time {value} is not representable")
        raise ValueError(f"Negative {what} {value} is not representable")
    if value > limit:
        raise ValueError(f"{what} {value} exceeds 64-bit range")
    return _U64.pack(value)


def build_key(prefix: Prefix, time: Timestamp) -> Key:
    """Return prefix followed by the fixed-width encoding of time.

    Used directly as a scan bound, or as the time-ordered part of an insert key.
    """
    return prefix_bytes(prefix) + _pack_u64(time, "time", MAX_TIME)


def build_insert_key(prefix: Prefix, time: Timestamp, sequence: int) -> Key:
    """Return the full storage key for a record inserted at time."""
    return build_key(prefix, time) + _pack_u64(sequence, "sequence", MAX_SEQUENCE)


def upper_bound(prefix: Prefix, time: Timestamp) -> Key:
    """Return the largest insert key that can exist for prefix at time."""
    return build_key(prefix, time) + _MAX_SEQUENCE_BYTES


def compare_key(candidate: Key, bound: Key, reverse: bool = False) -> bool:
    """Return True while candidate is still inside the scan relative to bound.

    Ascending scans keep going while candidate <= bound; descending scans
    while candidate >= bound. Plain byte comparison, nothing is decoded.
    """
    if reverse:
        return candidate >= bound
    return candidate <= bound


def split_key(key: Key, prefix: Prefix) -> tuple[Timestamp, int]:
    """Return (time, sequence) from an insert key built for prefix."""
    raw_prefix = prefix_bytes(prefix)
    if not key.startswith(raw_prefix):
        raise ValueError(f"Key {key!r} does not start with prefix {raw_prefix!r}")
    if len(key) != len(raw_prefix) + TIME_WIDTH + SEQUENCE_WIDTH:
        raise ValueError(f"Key {key!r} has unexpected length {len(key)}")

    offset = len(raw_prefix)
    (time,) = _U64.unpack_from(key, offset)
    (sequence,) = _U64.unpack_from(key, offset + TIME_WIDTH)
    return time, sequence
