"""Write-Ahead Log implementation.

Provides durable, crash-safe append-only log with CRC32 checksums. Every
engine commit, counter update and drop is one WAL record, so a commit is
either fully replayed or not replayed at all.
"""

from __future__ import annotations
import os
import struct
import zlib
import logging
from pathlib import Path
from typing import BinaryIO, Iterator
from ..core.types import Version, WALRecord, Mutation
from ..core.errors import WALCorruptionError

logger = logging.getLogger(__name__)

# WAL record format:
# [magic (4B)] [op (1B)] [version (8B)] [count (4B)]
#   count x ([key_len (4B)] [key bytes] [value_len (4B)] [value bytes])
# [crc32 (4B)]
MAGIC = 0x50524F01  # "PRO" + version
OP_COMMIT = 0
OP_COUNTER = 1
OP_DROP_ALL = 2
_OPS = (OP_COMMIT, OP_COUNTER, OP_DROP_ALL)

_HEAD = struct.Struct("<IBQI")
_LEN = struct.Struct("<I")
_CRC = struct.Struct("<I")


class _PartialRecord(Exception):
    """Internal signal: the file ended in the middle of a record."""


def _read_exact(f: BinaryIO, n: int) -> bytes:
    data = f.read(n)
    if len(data) < n:
        raise _PartialRecord
    return data


class SimpleWAL:
    """Simple append-only Write-Ahead Log with CRC32 checksums.

    Args:
        path: Path to WAL file
        flush_every_write: Whether to fsync after each append

    Invariants:
        - Records are written atomically with checksums
        - Partial records at EOF are skipped during replay
        - Records are returned in append order
        - A failed append leaves no bytes behind
    """

    def __init__(self, path: str | Path, flush_every_write: bool = True):
        self.path = Path(path)
        self.flush_every_write = flush_every_write
        self.sequence = 0
        self.valid_end = 0
        self._fd = None
        self._open_for_write()

    def _open_for_write(self) -> None:
        """Open WAL file for appending."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Unbuffered, so a failed append can be cut off without stale bytes
        # left in a userspace buffer
        self._fd = open(self.path, "ab", buffering=0)
        pos = self._fd.seek(0, os.SEEK_END)
        logger.debug(f"Opened WAL {self.path} at offset {pos}")

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self._fd.write(view)
            view = view[written:]

    def _rollback(self, offset: int) -> None:
        """Cut the file back to offset after a failed append."""
        try:
            os.ftruncate(self._fd.fileno(), offset)
            self._fd.seek(offset)
        except OSError as e:
            # The tail can't be trusted any more; refuse further appends
            logger.error(f"WAL rollback to offset {offset} failed, closing WAL: {e}")
            self._fd.close()
            self._fd = None
        else:
            logger.warning(f"Rolled WAL back to offset {offset} after failed append")

    def append(self, op: int, version: Version, mutations: list[Mutation]) -> int:
        """Append one record to the WAL.

        Args:
            op: OP_COMMIT, OP_COUNTER or OP_DROP_ALL
            version: Engine commit version the record belongs to
            mutations: (key, value) pairs carried by the record

        Returns:
            WAL sequence number
        """
        if self._fd is None:
            raise RuntimeError("WAL is closed")
        if op not in _OPS:
            raise ValueError(f"Unknown WAL op: {op}")

        parts = [_HEAD.pack(MAGIC, op, version, len(mutations))]
        for key, value in mutations:
            parts.append(_LEN.pack(len(key)))
            parts.append(key)
            parts.append(_LEN.pack(len(value)))
            parts.append(value)
        payload = b"".join(parts)

        # Calculate CRC32 of payload
        record = payload + _CRC.pack(zlib.crc32(payload))

        start = self._fd.seek(0, os.SEEK_END)
        try:
            self._write_all(record)
            if self.flush_every_write:
                os.fsync(self._fd.fileno())
        except BaseException:
            self._rollback(start)
            raise

        self.sequence += 1
        logger.debug(
            f"Appended WAL record seq={self.sequence}, op={op}, "
            f"version={version}, mutations={len(mutations)}"
        )
        return self.sequence

    def truncate(self, offset: int) -> None:
        """Drop everything after offset, e.g. a torn record found on replay."""
        if self._fd is None:
            raise RuntimeError("WAL is closed")

        size = self._fd.seek(0, os.SEEK_END)
        if size <= offset:
            return
        logger.warning(f"Truncating WAL {self.path} from {size} to {offset} bytes")
        os.ftruncate(self._fd.fileno(), offset)
        self._fd.seek(offset)
        os.fsync(self._fd.fileno())

    def sync(self) -> None:
        """Force data to disk (fsync)."""
        if self._fd:
            self._fd.flush()
            os.fsync(self._fd.fileno())

    def close(self) -> None:
        """Close writer and release resources."""
        if self._fd:
            self.sync()
            self._fd.close()
            self._fd = None
            logger.info(f"Closed WAL {self.path}")

    def __iter__(self) -> Iterator[WALRecord]:
        """Iterate (op, version, mutations) records in append order.

        Skips a partial record at EOF. Afterwards valid_end holds the offset
        just past the last complete record.
        """
        self.valid_end = 0
        with open(self.path, "rb") as f:
            while True:
                head = f.read(_HEAD.size)
                if len(head) == 0:
                    break  # EOF
                if len(head) < _HEAD.size:
                    logger.warning("Partial record header at EOF, skipping")
                    break

                magic, op, version, count = _HEAD.unpack(head)
                if magic != MAGIC:
                    raise WALCorruptionError(f"Invalid magic: {magic:x}")

                try:
                    body, mutations = self._read_mutations(f, count)
                    (stored_crc,) = _CRC.unpack(_read_exact(f, _CRC.size))
                except _PartialRecord:
                    logger.warning("Partial record at EOF, skipping")
                    break

                computed_crc = zlib.crc32(head + body)
                if stored_crc != computed_crc:
                    raise WALCorruptionError(
                        f"CRC mismatch: expected {computed_crc:x}, got {stored_crc:x}"
                    )
                if op not in _OPS:
                    raise WALCorruptionError(f"Unknown op code: {op}")

                self.valid_end = f.tell()
                yield (op, version, mutations)

    @staticmethod
    def _read_mutations(f: BinaryIO, count: int) -> tuple[bytes, list[Mutation]]:
        raw = bytearray()
        mutations: list[Mutation] = []
        for _ in range(count):
            key_len_bytes = _read_exact(f, _LEN.size)
            key = _read_exact(f, _LEN.unpack(key_len_bytes)[0])
            value_len_bytes = _read_exact(f, _LEN.size)
            value = _read_exact(f, _LEN.unpack(value_len_bytes)[0])
            raw += key_len_bytes + key + value_len_bytes + value
            mutations.append((key, value))
        return bytes(raw), mutations

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
