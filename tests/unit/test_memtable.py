"""Unit tests for VersionedMemtable implementation."""

import pytest
from profile_store.components.memtable import VersionedMemtable
from profile_store.interfaces.memtable import Memtable


@pytest.fixture
def memtable():
    """Create empty memtable for tests."""
    return VersionedMemtable()


def test_memtable_satisfies_protocol(memtable):
    assert isinstance(memtable, Memtable)


def test_memtable_basic_put_get(memtable):
    """Test basic put and get operations."""
    memtable.put(b'key1', b'value1', 1)
    memtable.put(b'key2', b'value2', 2)

    assert memtable.get(b'key1', 2) == b'value1'
    assert memtable.get(b'key2', 2) == b'value2'
    assert memtable.get(b'nonexistent', 2) is None


def test_memtable_get_respects_snapshot_version(memtable):
    """A reader pinned at a version does not see later commits."""
    memtable.put(b'key1', b'v1', 1)
    memtable.put(b'key1', b'v2', 3)

    assert memtable.get(b'key1', 0) is None
    assert memtable.get(b'key1', 1) == b'v1'
    assert memtable.get(b'key1', 2) == b'v1'
    assert memtable.get(b'key1', 3) == b'v2'


def test_memtable_rejects_non_increasing_version(memtable):
    """Versions per key must strictly increase."""
    memtable.put(b'key1', b'v1', 5)
    with pytest.raises(ValueError, match="not newer"):
        memtable.put(b'key1', b'v0', 5)


def test_memtable_iter_from_sorted_order(memtable):
    """Test that iteration returns entries in sorted key order."""
    keys_values = [
        (b'key3', b'value3'),
        (b'key1', b'value1'),
        (b'key2', b'value2'),
        (b'key5', b'value5'),
        (b'key4', b'value4'),
    ]

    for version, (key, value) in enumerate(keys_values, start=1):
        memtable.put(key, value, version)

    assert list(memtable.iter_from(None, 10)) == sorted(keys_values)


def test_memtable_iter_from_start_inclusive_and_exclusive(memtable):
    """Seek key may be included or excluded."""
    for i in range(5):
        memtable.put(f'key{i}'.encode(), f'value{i}'.encode(), i + 1)

    inclusive = [k for k, _ in memtable.iter_from(b'key2', 10)]
    exclusive = [k for k, _ in memtable.iter_from(b'key2', 10, inclusive=False)]

    assert inclusive == [b'key2', b'key3', b'key4']
    assert exclusive == [b'key3', b'key4']


def test_memtable_iter_from_reverse(memtable):
    """Reverse iteration starts at the last key <= start."""
    for i in range(5):
        memtable.put(f'key{i}'.encode(), f'value{i}'.encode(), i + 1)

    keys = [k for k, _ in memtable.iter_from(b'key2z', 10, reverse=True)]
    assert keys == [b'key2', b'key1', b'key0']

    keys = [k for k, _ in memtable.iter_from(b'key2', 10, reverse=True, inclusive=False)]
    assert keys == [b'key1', b'key0']

    keys = [k for k, _ in memtable.iter_from(None, 10, reverse=True)]
    assert keys == [b'key4', b'key3', b'key2', b'key1', b'key0']


def test_memtable_iter_from_hides_newer_keys(memtable):
    """Keys first written after the snapshot are skipped."""
    memtable.put(b'a', b'1', 1)
    memtable.put(b'b', b'2', 2)
    memtable.put(b'c', b'3', 3)

    assert list(memtable.iter_from(None, 2)) == [(b'a', b'1'), (b'b', b'2')]


def test_memtable_size_bytes_tracking(memtable):
    """Test that size_bytes tracks memory usage correctly."""
    initial_size = memtable.size_bytes()

    memtable.put(b'key1', b'value1', 1)
    size_after_first = memtable.size_bytes()

    memtable.put(b'key2', b'value2', 2)
    size_after_second = memtable.size_bytes()

    assert size_after_first > initial_size
    assert size_after_second > size_after_first


def test_memtable_clear(memtable):
    """Test clearing memtable."""
    for i in range(10):
        memtable.put(f'key{i}'.encode(), f'value{i}'.encode(), i + 1)

    assert len(memtable) == 10

    memtable.clear()

    assert len(memtable) == 0
    assert memtable.size_bytes() == 0
    assert list(memtable.iter_from(None, 100)) == []


def test_memtable_binary_keys(memtable):
    """Test memtable with binary keys."""
    binary_keys = [b'\x00\x01', b'\x00\x02', b'\x01\x00', b'\xff\xfe', b'\xff\xff']

    for i, key in enumerate(reversed(binary_keys), start=1):
        memtable.put(key, b'value', i)

    assert [k for k, _ in memtable.iter_from(None, 100)] == binary_keys
