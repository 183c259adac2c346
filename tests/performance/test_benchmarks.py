"""Performance benchmarks for the profile store."""

import csv
import shutil
import tempfile
import time

import pytest

from profile_store import RangeStore, StoreConfig, TimeWindow
from profile_store.bench import main, run_workload, sample_record


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def benchmark_store(temp_dir):
    """Create store optimized for benchmarks."""
    config = StoreConfig(
        data_dir=temp_dir,
        sequence_batch_size=1_000_000,
        wal_flush_every_write=False,  # Faster writes
    )
    store = RangeStore.open(config)
    yield store
    store.close()


def test_insert_performance(benchmark_store):
    """Benchmark sequential insert performance."""
    num_records = 10000

    start_time = time.time()
    for i in range(num_records):
        benchmark_store.insert("bench", sample_record(i))
    duration = time.time() - start_time

    inserts_per_second = num_records / duration if duration > 0 else float("inf")

    print(f"\nInserts: {inserts_per_second:.0f} ops/sec")
    print(f"Total time: {duration:.3f}s for {num_records} records")

    assert inserts_per_second > 1000  # At least 1K ops/sec


def test_scan_performance(benchmark_store):
    """Benchmark range scan over a populated prefix."""
    num_records = 10000
    for i in range(num_records):
        benchmark_store.insert("bench", sample_record(i))

    now = int(time.time() * 1000)
    window = TimeWindow(now - 24 * 3600 * 1000, now + 1000)

    start_time = time.time()
    results = list(benchmark_store.scan("bench", window))
    duration = time.time() - start_time

    scans_per_second = len(results) / duration if duration > 0 else float("inf")

    print(f"\nScan: {scans_per_second:.0f} records/sec")

    assert len(results) == num_records
    assert scans_per_second > 1000  # Should scan at least 1K records/sec


def test_recovery_performance(temp_dir):
    """Benchmark reopening a store with a populated WAL."""
    config = StoreConfig(data_dir=temp_dir, wal_flush_every_write=False)
    num_records = 5000

    store = RangeStore.open(config)
    for i in range(num_records):
        store.insert("bench", sample_record(i))
    store.close()

    start_time = time.time()
    store = RangeStore.open(config)
    duration = time.time() - start_time

    now = int(time.time() * 1000)
    count = sum(1 for _ in store.scan("bench", TimeWindow(0, now + 1000)))
    store.close()

    recovery_rate = num_records / duration if duration > 0 else float("inf")
    print(f"\nRecovery: {recovery_rate:.0f} records/sec")

    assert count == num_records
    assert recovery_rate > 1000  # Should recover quickly


def test_run_workload(benchmark_store):
    """Workload driver inserts and scans the same number of records."""
    result = run_workload(benchmark_store, "driver", 500, window_ms=3600 * 1000)

    assert result.records == 500
    assert result.scanned == 500
    assert result.inserts_per_second > 0
    assert result.scans_per_second > 0


def test_driver_main_writes_csv(temp_dir, capsys):
    """Command-line driver runs end to end and appends a CSV row."""
    out_csv = f"{temp_dir}/results.csv"
    argv = [
        "--data-dir", f"{temp_dir}/data",
        "--records", "200",
        "--no-fsync",
        "--out-csv", out_csv,
    ]

    assert main(argv) == 0
    assert main(argv + ["--reset"]) == 0

    with open(out_csv, newline="") as f:
        rows = list(csv.reader(f))

    assert rows[0][0] == "records"
    assert len(rows) == 3
    assert rows[1][3] == "200"
    assert rows[2][3] == "200"  # reset dropped the first run's records
    assert "Inserts:" in capsys.readouterr().out
