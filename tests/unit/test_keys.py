"""Unit tests for key construction and comparison."""

import random
import struct

import pytest

from profile_store.components.keys import (
    MAX_SEQUENCE,
    MAX_TIME,
    build_insert_key,
    build_key,
    compare_key,
    prefix_bytes,
    split_key,
    upper_bound,
)
from profile_store.core.types import TimeWindow

T = 1_700_000_000_000  # ms


def test_build_key_layout():
    """Prefix is followed by the 8-byte big-endian time."""
    key = build_key(b"A", T)

    assert key == b"A" + struct.pack(">Q", T)
    assert len(key) == 9


def test_build_insert_key_layout():
    """Insert keys append an 8-byte big-endian sequence."""
    key = build_insert_key("target", T, 42)

    assert key == b"target" + struct.pack(">Q", T) + struct.pack(">Q", 42)
    assert key.startswith(build_key("target", T))


def test_str_and_bytes_prefix_are_equivalent():
    assert build_key("A", T) == build_key(b"A", T)
    assert prefix_bytes("héllo") == "héllo".encode("utf-8")


def test_empty_prefix_allowed():
    assert build_key(b"", T) == struct.pack(">Q", T)
    assert split_key(build_insert_key("", T, 7), "") == (T, 7)


def test_time_order_equals_byte_order():
    """For t1 < t2, build_key(p, t1) < build_key(p, t2)."""
    rng = random.Random(1234)
    times = sorted(rng.randrange(0, 2**48) for _ in range(200))

    for t1, t2 in zip(times, times[1:]):
        if t1 < t2:
            assert build_key(b"p", t1) < build_key(b"p", t2)


def test_fixed_width_survives_magnitude_changes():
    """A variable-width encoding would order 255 after 256; fixed width does not."""
    assert build_key(b"p", 255) < build_key(b"p", 256)
    assert build_key(b"p", 0) < build_key(b"p", 1) < build_key(b"p", 2**32)
    assert build_key(b"p", 2**56 - 1) < build_key(b"p", 2**56)


def test_sequence_breaks_time_ties():
    keys = [build_insert_key(b"p", T, seq) for seq in (0, 1, 255, 256, 2**40)]
    assert keys == sorted(keys)


def test_time_dominates_sequence():
    assert build_insert_key(b"p", T, MAX_SEQUENCE) < build_insert_key(b"p", T + 1, 0)


def test_pre_epoch_time_rejected():
    with pytest.raises(ValueError, match="Pre-epoch"):
        build_key(b"p", -1)


def test_time_and_sequence_range_limits():
    assert build_key(b"p", MAX_TIME).endswith(b"\xff" * 8)
    with pytest.raises(ValueError, match="exceeds"):
        build_key(b"p", MAX_TIME + 1)
    with pytest.raises(ValueError, match="Negative sequence"):
        build_insert_key(b"p", T, -1)
    with pytest.raises(ValueError, match="exceeds"):
        build_insert_key(b"p", T, MAX_SEQUENCE + 1)


def test_upper_bound_covers_every_sequence_at_time():
    bound = upper_bound(b"p", T)

    assert build_insert_key(b"p", T, 0) <= bound
    assert build_insert_key(b"p", T, MAX_SEQUENCE) <= bound
    assert build_insert_key(b"p", T + 1, 0) > bound


def test_compare_key_ascending():
    bound = build_key(b"p", T)

    assert compare_key(build_key(b"p", T - 1), bound)
    assert compare_key(bound, bound)
    assert not compare_key(build_key(b"p", T + 1), bound)
    # Insert key at exactly T is longer than the bare bound
    assert not compare_key(build_insert_key(b"p", T, 0), bound)


def test_compare_key_descending():
    bound = build_key(b"p", T)

    assert compare_key(build_insert_key(b"p", T, 0), bound, reverse=True)
    assert compare_key(bound, bound, reverse=True)
    assert not compare_key(build_insert_key(b"p", T - 1, 5), bound, reverse=True)


def test_split_key_round_trip():
    key = build_insert_key(b"A", T, 99)
    assert split_key(key, b"A") == (T, 99)


def test_split_key_rejects_foreign_keys():
    key = build_insert_key(b"A", T, 99)

    with pytest.raises(ValueError, match="does not start with prefix"):
        split_key(key, b"B")
    with pytest.raises(ValueError, match="unexpected length"):
        split_key(build_key(b"A", T), b"A")


def test_time_window_to_keys():
    window = TimeWindow(T - 1000, T)
    min_key, max_key = window.to_keys("A")

    assert min_key == build_key("A", T - 1000)
    assert max_key == upper_bound("A", T)
    assert T - 1000 in window
    assert T in window
    assert T + 1 not in window


def test_time_window_rejects_inverted_bounds():
    with pytest.raises(ValueError, match="after end"):
        TimeWindow(T, T - 1)
