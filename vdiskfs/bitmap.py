"""Free-block bitmap: one bit per disk block, set when the block is in use."""

from __future__ import annotations

import logging
import sys
import threading
from typing import TextIO

from .config import NoSpaceError

_log = logging.getLogger(__name__)

_SAMPLE_BYTES = 8


class FreeBitmap:
    """Tracks which blocks of a disk are free and hands out single blocks or runs."""

    def __init__(self, total_blocks: int) -> None:
        if total_blocks <= 0:
            raise ValueError("总块数不能为零")
        self._total = total_blocks
        self._free = total_blocks
        self._bits = bytearray((total_blocks + 7) // 8)
        self._lock = threading.RLock()

    # -- bit helpers -------------------------------------------------------

    def _in_range(self, block_no: int) -> bool:
        return 0 <= block_no < self._total

    def _is_free(self, block_no: int) -> bool:
        if not self._in_range(block_no):
            return False
        return not (self._bits[block_no >> 3] >> (block_no & 7)) & 1

    def _set(self, block_no: int, allocated: bool) -> None:
        if not self._in_range(block_no):
            return
        index, mask = block_no >> 3, 1 << (block_no & 7)
        was_free = not self._bits[index] & mask
        if allocated:
            self._bits[index] |= mask
            if was_free:
                self._free -= 1
        else:
            self._bits[index] &= ~mask & 0xFF
            if not was_free:
                self._free += 1

    def _find_first_free(self) -> int | None:
        for byte_index, byte in enumerate(self._bits):
            if byte == 0xFF:
                continue
            for bit in range(8):
                block = byte_index * 8 + bit
                if block >= self._total:
                    return None
                if not (byte >> bit) & 1:
                    return block
        return None

    def _find_run(self, count: int) -> int | None:
        if count <= 0 or count > self._free:
            return None
        run_start = run = 0
        for block in range(self._total):
            if self._is_free(block):
                if run == 0:
                    run_start = block
                run += 1
                if run == count:
                    return run_start
            else:
                run = 0
        return None

    def _count_free(self) -> int:
        return sum(1 for block in range(self._total) if self._is_free(block))

    # -- public interface --------------------------------------------------

    def initialize(self) -> None:
        """Mark every block as free."""
        with self._lock:
            self._bits[:] = bytes(len(self._bits))
            self._free = self._total

    def allocate_block(self) -> int:
        """Allocate the lowest-numbered free block and return its number."""
        with self._lock:
            if self._free == 0:
                raise NoSpaceError("no free blocks")
            block = self._find_first_free()
            if block is None:
                raise NoSpaceError("failed to find a free block")
            self._set(block, True)
            return block

    def allocate_consecutive_blocks(self, count: int) -> int:
        """Allocate the first run of ``count`` free blocks and return its start."""
        with self._lock:
            if count <= 0:
                raise ValueError("block count must be positive")
            if count > self._free:
                raise NoSpaceError(f"only {self._free} free blocks, {count} requested")
            start = self._find_run(count)
            if start is None:
                raise NoSpaceError(f"no run of {count} consecutive free blocks")
            for block in range(start, start + count):
                self._set(block, True)
            return start

    def free_block(self, block_no: int) -> None:
        """Release one block; out-of-range numbers are ignored."""
        with self._lock:
            self._set(block_no, False)

    def free_consecutive_blocks(self, start_block: int, count: int) -> None:
        """Release ``count`` blocks from ``start_block``, clipped to the disk."""
        with self._lock:
            if not self._in_range(start_block) or count <= 0:
                return
            for block in range(start_block, min(start_block + count, self._total)):
                self._set(block, False)

    @property
    def total_blocks(self) -> int:
        """Number of blocks tracked."""
        return self._total

    @property
    def free_blocks(self) -> int:
        """Number of free blocks."""
        with self._lock:
            return self._free

    @property
    def used_blocks(self) -> int:
        """Number of allocated blocks."""
        with self._lock:
            return self._total - self._free

    @property
    def usage_ratio(self) -> float:
        """Fraction of blocks in use, between 0.0 and 1.0."""
        with self._lock:
            return (self._total - self._free) / self._total

    def is_block_allocated(self, block_no: int) -> bool:
        """True if the block is in use; False if free or out of range."""
        with self._lock:
            return self._in_range(block_no) and not self._is_free(block_no)

    def mark_block_used(self, block_no: int) -> None:
        """Mark a block as in use; out-of-range numbers are ignored."""
        with self._lock:
            self._set(block_no, True)

    def status_report(self) -> str:
        """Human-readable summary of the bitmap."""
        with self._lock:
            total, free = self._total, self._free
            sample = bytes(self._bits[:_SAMPLE_BYTES])
        used = total - free
        lines = [
            "",
            "=== 空闲盘块表状态 ===",
            f"总块数: {total}",
            f"空闲块数: {free}",
            f"已使用块数: {used}",
            f"使用率: {used * 100.0 / total:.2f}%",
            f"位图样本（前{len(sample)}字节）: " + "".join(f"{b:02x} " for b in sample),
        ]
        return "\n".join(lines) + "\n"

    def print_status(self, file: TextIO | None = None) -> None:
        """Write :meth:`status_report` to ``file`` (standard output by default)."""
        (file or sys.stdout).write(self.status_report())

    def validate(self) -> bool:
        """Recount the free blocks and check that the stored count agrees."""
        with self._lock:
            counted = self._count_free()
            if counted != self._free:
                _log.error(
                    "位图验证失败: 计算的空闲块数(%d) != 记录的空闲块数(%d)",
                    counted,
                    self._free,
                )
                return False
            return True

    def to_bytes(self) -> bytes:
        """Raw bitmap bytes, bit ``n % 8`` of byte ``n // 8`` standing for block ``n``."""
        with self._lock:
            return bytes(self._bits)

    def load_bytes(self, data: bytes) -> None:
        """Replace the bitmap with the leading bytes of ``data`` and recount."""
        with self._lock:
            size = len(self._bits)
            if len(data) < size:
                raise ValueError(f"bitmap needs {size} bytes, got {len(data)}")
            self._bits[:] = data[:size]
            self._free = self._count_free()