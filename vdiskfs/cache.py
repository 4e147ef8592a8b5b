"""Write-back block cache with first-in first-out page replacement."""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field

from .config import BLOCK_SIZE, CACHE_PAGES, DiskError
from .disk import VirtualDisk


@dataclass
class CachePage:
    """One cache slot holding a copy of a disk block."""

    block_no: int | None = None
    dirty: bool = False
    access_time: float = 0.0
    data: bytearray = field(default_factory=bytearray)


class CacheManager:
    """Caches disk blocks in a fixed number of pages, writing dirty pages back lazily."""

    def __init__(
        self,
        disk: VirtualDisk,
        page_count: int = CACHE_PAGES,
        block_size: int = BLOCK_SIZE,
    ) -> None:
        if page_count <= 0:
            raise ValueError("page count must be positive")
        if block_size <= 0:
            raise ValueError("block size must be positive")
        self._disk = disk
        self._block_size = block_size
        self._pages = [CachePage(data=bytearray(block_size)) for _ in range(page_count)]
        self._fifo: deque[int] = deque()
        self._block_to_page: dict[int, int] = {}
        self._lock = threading.Lock()

    # -- internals ---------------------------------------------------------

    def _check_block(self, block_no: int) -> None:
        if not 0 <= block_no < self._disk.total_blocks:
            raise DiskError(
                f"block number {block_no} exceeds disk capacity "
                f"({self._disk.total_blocks} blocks)"
            )

    def _write_back(self, page: CachePage) -> None:
        if page.block_no is not None:
            self._disk.write_block(page.block_no, bytes(page.data))
            page.dirty = False

    def _free_page(self) -> int:
        for index, page in enumerate(self._pages):
            if page.block_no is None:
                return index
        if not self._fifo:
            raise DiskError("no cache page available")
        victim = self._fifo.popleft()
        page = self._pages[victim]
        if page.dirty:
            self._write_back(page)
        del self._block_to_page[page.block_no]
        page.block_no = None
        return victim

    def _assign(self, index: int, block_no: int) -> CachePage:
        page = self._pages[index]
        page.block_no = block_no
        page.dirty = False
        page.access_time = time.time()
        self._block_to_page[block_no] = index
        self._fifo.append(index)
        return page

    # -- public interface --------------------------------------------------

    def read_block(self, block_no: int) -> bytes:
        """Return a block's contents, loading it from disk on a miss."""
        with self._lock:
            index = self._block_to_page.get(block_no)
            if index is not None:
                return bytes(self._pages[index].data)
            self._check_block(block_no)
            index = self._free_page()
            data = self._disk.read_block(block_no)
            page = self._assign(index, block_no)
            page.data[:] = data
            return bytes(page.data)

    def write_block(self, block_no: int, data: bytes) -> None:
        """Store a block's new contents in the cache and mark the page dirty."""
        if len(data) != self._block_size:
            raise ValueError(
                f"block data must be {self._block_size} bytes, got {len(data)}"
            )
        with self._lock:
            index = self._block_to_page.get(block_no)
            if index is None:
                self._check_block(block_no)
                page = self._assign(self._free_page(), block_no)
            else:
                page = self._pages[index]
            page.data[:] = data
            page.dirty = True

    def flush_all(self) -> None:
        """Write every dirty page back to disk."""
        with self._lock:
            for page in self._pages:
                if page.dirty:
                    self._write_back(page)

    def close(self) -> None:
        """Flush all dirty pages."""
        self.flush_all()

    def __enter__(self) -> CacheManager:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()