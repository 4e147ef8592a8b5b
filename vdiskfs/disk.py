"""A virtual disk stored in an ordinary file and accessed block by block."""

from __future__ import annotations

import logging
import os
from typing import BinaryIO

from .config import BLOCK_SIZE, DiskError

_log = logging.getLogger(__name__)

DISK_SIZE = 256_000_000
"""Nominal default disk size, in bytes."""

_MIB = 1024 * 1024


class VirtualDisk:
    """Fixed-size array of blocks kept in a file on the host."""

    def __init__(
        self,
        filename: str | os.PathLike[str],
        size_mb: int,
        block_size: int = BLOCK_SIZE,
    ) -> None:
        if block_size <= 0:
            raise ValueError("block size must be positive")
        self._filename = os.fspath(filename)
        self._disk_size = size_mb * _MIB
        self._block_size = block_size
        self._total_blocks = self._disk_size // block_size
        self._file: BinaryIO | None = None

    @property
    def filename(self) -> str:
        """Path of the backing file."""
        return self._filename

    @property
    def total_blocks(self) -> int:
        """Number of blocks on the disk."""
        return self._total_blocks

    @property
    def block_size(self) -> int:
        """Size of one block, in bytes."""
        return self._block_size

    @property
    def is_open(self) -> bool:
        """True while the backing file is open."""
        return self._file is not None

    def create(self, filename: str | os.PathLike[str], size_mb: int) -> None:
        """Create (or overwrite) a zero-filled disk file and open it for use."""
        self.close()
        self._filename = os.fspath(filename)
        self._disk_size = size_mb * _MIB
        self._total_blocks = self._disk_size // self._block_size
        zeros = bytes(self._block_size)
        try:
            with open(self._filename, "wb") as out:
                for _ in range(self._total_blocks):
                    out.write(zeros)
        except OSError as err:
            raise DiskError(f"failed to create disk file: {self._filename}") from err
        self.open()
        _log.info(
            "Virtual disk created successfully: %s (Size: %dMB, Blocks: %d)",
            self._filename,
            size_mb,
            self._total_blocks,
        )

    def open(self) -> None:
        """Open an existing disk file for reading and writing."""
        if self._file is not None:
            return
        try:
            self._file = open(self._filename, "r+b")
        except OSError as err:
            raise DiskError(f"failed to open disk file: {self._filename}") from err

    def close(self) -> None:
        """Close the backing file; safe to call more than once."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self) -> VirtualDisk:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _seek(self, block_no: int) -> BinaryIO:
        if self._file is None:
            raise DiskError("disk file is not open")
        if not 0 <= block_no < self._total_blocks:
            raise DiskError(
                f"block number {block_no} exceeds disk capacity "
                f"({self._total_blocks} blocks)"
            )
        try:
            self._file.seek(block_no * self._block_size)
        except OSError as err:
            raise DiskError(f"failed to seek to block {block_no}") from err
        return self._file

    def read_block(self, block_no: int) -> bytes:
        """Return the contents of one block."""
        stream = self._seek(block_no)
        try:
            data = stream.read(self._block_size)
        except OSError as err:
            raise DiskError(f"failed to read block {block_no}") from err
        if len(data) != self._block_size:
            raise DiskError(
                f"failed to read block {block_no} "
                f"(read {len(data)} bytes, expected {self._block_size})"
            )
        return data

    def write_block(self, block_no: int, data: bytes) -> None:
        """Overwrite one block with exactly ``block_size`` bytes."""
        if len(data) != self._block_size:
            raise ValueError(
                f"block data must be {self._block_size} bytes, got {len(data)}"
            )
        stream = self._seek(block_no)
        try:
            stream.write(data)
            stream.flush()
        except OSError as err:
            raise DiskError(f"failed to write block {block_no}") from err

    def copy_blocks(self, src_block: int, dst_block: int, count: int) -> None:
        """Copy ``count`` blocks from ``src_block`` to ``dst_block``, in order."""
        for offset in range(count):
            self.write_block(dst_block + offset, self.read_block(src_block + offset))