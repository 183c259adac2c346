#!/usr/bin/env python3
"""Profile store workload driver.

Inserts a batch of profile metadata records and scans them back, reporting
throughput for both paths. Optionally appends the results to a CSV file.

Usage:
    profile-store-bench --records 100000 --data-dir /tmp/profile_store_bench
"""

from __future__ import annotations

import argparse
import csv
import logging
import os
import time
from dataclasses import dataclass

from .core.config import StoreConfig
from .core.store import RangeStore, current_millis
from .core.types import ProfileMeta, TimeWindow

logger = logging.getLogger(__name__)


@dataclass
class WorkloadResult:
    """Throughput measured for one workload run."""

    records: int
    insert_seconds: float
    scan_seconds: float
    scanned: int

    @property
    def inserts_per_second(self) -> float:
        return self.records / self.insert_seconds if self.insert_seconds > 0 else float("inf")

    @property
    def scans_per_second(self) -> float:
        return self.scanned / self.scan_seconds if self.scan_seconds > 0 else float("inf")


def sample_record(profile_id: int) -> ProfileMeta:
    """Build a record shaped like an allocation-count sample."""
    now_ns = time.time_ns()
    return ProfileMeta(
        profile_id=profile_id,
        timestamp=now_ns // 1_000_000,
        duration=now_ns,
        sample_type="alloc_objects",
        sample_type_unit="count",
    )


def run_workload(store: RangeStore, prefix: str, records: int, window_ms: int) -> WorkloadResult:
    """Insert records under prefix, then scan the trailing window back."""
    start = time.perf_counter()
    for i in range(records):
        store.insert(prefix, sample_record(i + 1))
    insert_seconds = time.perf_counter() - start

    now = current_millis()
    window = TimeWindow(max(0, now - window_ms), now)

    start = time.perf_counter()
    scanned = sum(1 for _ in store.scan(prefix, window))
    scan_seconds = time.perf_counter() - start

    return WorkloadResult(records, insert_seconds, scan_seconds, scanned)


def write_csv(path: str, result: WorkloadResult) -> None:
    """Append result as one CSV row, writing a header for new files."""
    new_file = not os.path.exists(path)
    with open(path, "a", newline="") as f:
        w = csv.writer(f)
        if new_file:
            w.writerow(["records", "insert_s", "inserts_per_s", "scanned", "scan_s", "scans_per_s"])
        w.writerow([
            result.records,
            f"{result.insert_seconds:.6f}",
            f"{result.inserts_per_second:.0f}",
            result.scanned,
            f"{result.scan_seconds:.6f}",
            f"{result.scans_per_second:.0f}",
        ])


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the workload."""
    p = argparse.ArgumentParser(description="Profile store insert/scan workload driver")
    p.add_argument("--data-dir", default="/tmp/profile_store_bench", help="Data directory")
    p.add_argument("--prefix", default="bench", help="Key prefix to write under")
    p.add_argument("--records", type=int, default=10_000, help="Records to insert")
    p.add_argument("--window-ms", type=int, default=24 * 3600 * 1000, help="Scan window length")
    p.add_argument("--batch-size", type=int, default=1000, help="Sequence lease size")
    p.add_argument("--no-fsync", action="store_true", help="Do not fsync every WAL append")
    p.add_argument("--reset", action="store_true", help="Drop existing records first")
    p.add_argument("--out-csv", default=None, help="Append results to this CSV file")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    config = StoreConfig(
        data_dir=args.data_dir,
        sequence_batch_size=args.batch_size,
        wal_flush_every_write=not args.no_fsync,
    )
    with RangeStore.open(config) as store:
        if args.reset:
            store.drop_all()
        result = run_workload(store, args.prefix, args.records, args.window_ms)

    print(f"Inserts: {result.inserts_per_second:.0f} ops/sec ({result.records} in {result.insert_seconds:.3f}s)")
    print(f"Scan:    {result.scans_per_second:.0f} records/sec ({result.scanned} in {result.scan_seconds:.3f}s)")

    if args.out_csv:
        write_csv(args.out_csv, result)
        print(f"Results appended to {args.out_csv}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
