"""Canonical binary codec for ProfileMeta.

Provides a fixed, self-describing layout that is readable without any
external schema.
"""

from __future__ import annotations

import struct

from ..core.errors import MalformedRecord
from ..core.types import ProfileMeta

# Record format (big-endian):
# [version (1B)] [profile_id (8B, u64)] [timestamp (8B, i64)] [duration (8B, i64)]
# [sample_type_len (2B)] [sample_type] [sample_type_unit_len (2B)] [sample_type_unit]
RECORD_VERSION = 1

_HEADER = struct.Struct(">BQqq")
_STR_LEN = struct.Struct(">H")

MAX_STRING_BYTES = 0xFFFF
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_U64_MAX = 2**64 - 1


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if not low <= value <= high:
        raise ValueError(f"{name} {value} out of range [{low}, {high}]")


def _encode_str(name: str, value: str) -> bytes:
    raw = value.encode("utf-8")
    if len(raw) > MAX_STRING_BYTES:
        raise ValueError(f"{name} is {len(raw)} bytes, limit is {MAX_STRING_BYTES}")
    return _STR_LEN.pack(len(raw)) + raw


def encode_record(record: ProfileMeta) -> bytes:
    """Serialize record into the canonical layout.

    Raises:
        ValueError: If an integer field is out of range or a string is too long
    """
    _check_range("profile_id", record.profile_id, 0, _U64_MAX)
    _check_range("timestamp", record.timestamp, _I64_MIN, _I64_MAX)
    _check_range("duration", record.duration, _I64_MIN, _I64_MAX)

    return (
        _HEADER.pack(RECORD_VERSION, record.profile_id, record.timestamp, record.duration)
        + _encode_str("sample_type", record.sample_type)
        + _encode_str("sample_type_unit", record.sample_type_unit)
    )


def _decode_str(data: bytes, offset: int, name: str) -> tuple[str, int]:
    if len(data) - offset < _STR_LEN.size:
        raise MalformedRecord(f"Missing length prefix for {name} at offset {offset}")
    (length,) = _STR_LEN.unpack_from(data, offset)
    offset += _STR_LEN.size

    if length > len(data) - offset:
        raise MalformedRecord(
            f"{name} length {length} exceeds remaining {len(data) - offset} bytes"
        )
    raw = data[offset:offset + length]
    try:
        return raw.decode("utf-8"), offset + length
    except UnicodeDecodeError as e:
        raise MalformedRecord(f"{name} is not valid UTF-8: {e}") from e


def decode_record(data: bytes) -> ProfileMeta:
    """Deserialize bytes produced by encode_record.

    Raises:
        MalformedRecord: If the buffer is truncated, has trailing bytes,
            carries an unknown version or a string is not valid UTF-8
    """
    data = bytes(data)
    if len(data) < _HEADER.size:
        raise MalformedRecord(
            f"Record is {len(data)} bytes, header needs {_HEADER.size}"
        )

    version, profile_id, timestamp, duration = _HEADER.unpack_from(data, 0)
    if version != RECORD_VERSION:
        raise MalformedRecord(f"Unsupported record version: {version}")

    sample_type, offset = _decode_str(data, _HEADER.size, "sample_type")
    sample_type_unit, offset = _decode_str(data, offset, "sample_type_unit")

    if offset != len(data):
        raise MalformedRecord(f"{len(data) - offset} trailing bytes after record")

    return ProfileMeta(
        profile_id=profile_id,
        timestamp=timestamp,
        duration=duration,
        sample_type=sample_type,
        sample_type_unit=sample_type_unit,
    )
