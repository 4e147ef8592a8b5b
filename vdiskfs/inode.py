"""Inodes stored in a fixed table on the virtual disk, with contiguous data extents."""

from __future__ import annotations

import enum
import struct
import time
from dataclasses import dataclass, replace

from .bitmap import FreeBitmap
from .config import BLOCK_SIZE, MAX_FILES, NoSpaceError
from .disk import VirtualDisk

NAME_SIZE = 64
"""Size of the on-disk name field, including the terminating NUL."""

_LAYOUT = struct.Struct(f"<IB3xIIIIqq{NAME_SIZE}s")

INODE_SIZE = _LAYOUT.size
"""Size of one packed inode record, in bytes."""

INODES_PER_BLOCK = BLOCK_SIZE // INODE_SIZE
"""Number of inode records that fit in one block."""

INODE_TABLE_START = 1
"""Block number where the inode table begins."""

INODE_TABLE_BLOCKS = -(-MAX_FILES // INODES_PER_BLOCK)
"""Number of blocks the inode table occupies."""

DELETED_TYPE = 0xFF
"""Type value written into a deleted inode."""


class INodeType(enum.IntEnum):
    """Kind of object an inode describes."""

    FILE = 0
    DIRECTORY = 1


def _node_type(value: int) -> int:
    try:
        return INodeType(value)
    except ValueError:
        return value


@dataclass
class INode:
    """Metadata of one file or directory."""

    id: int = 0
    type: int = INodeType.FILE
    size: int = 0
    start_block: int = 0
    block_count: int = 0
    parent_id: int = 0
    create_time: int = 0
    modify_time: int = 0
    name: str = ""

    def pack(self) -> bytes:
        """Encode as a fixed-size record; names longer than 63 bytes are cut."""
        raw_name = self.name.encode("utf-8")[: NAME_SIZE - 1]
        return _LAYOUT.pack(
            self.id,
            int(self.type),
            self.size,
            self.start_block,
            self.block_count,
            self.parent_id,
            self.create_time,
            self.modify_time,
            raw_name,
        )

    @classmethod
    def unpack(cls, data: bytes) -> INode:
        """Decode a record produced by :meth:`pack`."""
        if len(data) < INODE_SIZE:
            raise ValueError(f"inode record needs {INODE_SIZE} bytes, got {len(data)}")
        (
            inode_id,
            type_,
            size,
            start_block,
            block_count,
            parent_id,
            create_time,
            modify_time,
            raw_name,
        ) = _LAYOUT.unpack_from(data)
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="ignore")
        return cls(
            id=inode_id,
            type=_node_type(type_),
            size=size,
            start_block=start_block,
            block_count=block_count,
            parent_id=parent_id,
            create_time=create_time,
            modify_time=modify_time,
            name=name,
        )

    @property
    def is_valid(self) -> bool:
        """True if the record describes a live file or directory."""
        return (
            self.id < MAX_FILES
            and self.type in (INodeType.FILE, INodeType.DIRECTORY)
            and self.block_count > 0
        )


class INodeManager:
    """Creates, reads, resizes and deletes inodes kept in the disk's inode table."""

    def __init__(self, disk: VirtualDisk, bitmap: FreeBitmap) -> None:
        self._disk = disk
        self._bitmap = bitmap
        self._table_start = INODE_TABLE_START
        self._used = [False] * MAX_FILES
        self._count = 0
        self._scan_table()

    # -- internals ---------------------------------------------------------

    def _location(self, inode_id: int) -> tuple[int, int]:
        if not 0 <= inode_id < MAX_FILES:
            raise ValueError(f"inode id {inode_id} out of range (0..{MAX_FILES - 1})")
        block = inode_id // INODES_PER_BLOCK + self._table_start
        offset = (inode_id % INODES_PER_BLOCK) * INODE_SIZE
        return block, offset

    def _scan_table(self) -> None:
        from .config import DiskError

        for inode_id in range(MAX_FILES):
            try:
                node = self.read_inode(inode_id)
            except DiskError:
                continue
            if node.is_valid:
                self._used[inode_id] = True
                self._count += 1

    def _blocks_needed(self, size: int) -> int:
        return -(-size // BLOCK_SIZE)

    def _can_extend(self, start: int, count: int) -> bool:
        end = start + count
        if end > self._bitmap.total_blocks:
            return False
        return not any(self._bitmap.is_block_allocated(b) for b in range(start, end))

    # -- public interface --------------------------------------------------

    def create_inode(self, parent_id: int, type: int, name: str, size: int) -> int:
        """Allocate an inode and its data blocks; return the new inode id."""
        if self._count >= MAX_FILES:
            raise NoSpaceError("no free inode")
        inode_id = next((i for i, used in enumerate(self._used) if not used), None)
        if inode_id is None:
            raise NoSpaceError("no free inode")

        if type == INodeType.FILE:
            block_count = self._blocks_needed(size)
        else:
            block_count = 1
        start_block = self._bitmap.allocate_consecutive_blocks(block_count)

        now = int(time.time())
        node = INode(
            id=inode_id,
            type=_node_type(type),
            size=size,
            start_block=start_block,
            block_count=block_count,
            parent_id=parent_id,
            create_time=now,
            modify_time=now,
            name=name,
        )
        try:
            self.write_inode(inode_id, node)
        except Exception:
            self._bitmap.free_consecutive_blocks(start_block, block_count)
            raise

        self._used[inode_id] = True
        self._count += 1
        return inode_id

    def read_inode(self, inode_id: int) -> INode:
        """Return the inode record stored in slot ``inode_id``."""
        block_no, offset = self._location(inode_id)
        block = self._disk.read_block(block_no)
        return INode.unpack(block[offset : offset + INODE_SIZE])

    def write_inode(self, inode_id: int, node: INode) -> None:
        """Store ``node`` in slot ``inode_id`` of the inode table."""
        block_no, offset = self._location(inode_id)
        block = bytearray(self._disk.read_block(block_no))
        block[offset : offset + INODE_SIZE] = node.pack()
        self._disk.write_block(block_no, bytes(block))

    def delete_inode(self, inode_id: int) -> None:
        """Release an inode; a file's data blocks are freed as well."""
        if not 0 <= inode_id < MAX_FILES or not self._used[inode_id]:
            raise FileNotFoundError(f"inode {inode_id} is not in use")
        node = self.read_inode(inode_id)
        if node.type == INodeType.FILE:
            self._bitmap.free_consecutive_blocks(node.start_block, node.block_count)
        cleared = replace(
            node, type=DELETED_TYPE, size=0, block_count=0, start_block=0, name=""
        )
        self.write_inode(inode_id, cleared)
        self._used[inode_id] = False
        self._count -= 1

    def find_inode(self, parent_id: int, name: str) -> int | None:
        """Return the id of the live inode with this parent and name, or None."""
        for inode_id, used in enumerate(self._used):
            if not used:
                continue
            node = self.read_inode(inode_id)
            if node.parent_id == parent_id and node.name == name:
                return inode_id
        return None

    def resize_inode(self, inode_id: int, new_size: int) -> None:
        """Change a file's size, growing in place or moving it to a new extent."""
        node = self.read_inode(inode_id)
        if node.type != INodeType.FILE:
            raise ValueError(f"inode {inode_id} is not a file")

        new_blocks = self._blocks_needed(new_size)
        old_blocks = node.block_count
        now = int(time.time())

        if new_blocks == old_blocks:
            self.write_inode(inode_id, replace(node, size=new_size, modify_time=now))
            return

        if new_blocks > old_blocks:
            tail = node.start_block + old_blocks
            additional = new_blocks - old_blocks
            if self._can_extend(tail, additional):
                for block in range(tail, tail + additional):
                    self._bitmap.mark_block_used(block)
                self.write_inode(
                    inode_id,
                    replace(node, block_count=new_blocks, size=new_size, modify_time=now),
                )
                return

        new_start = self._bitmap.allocate_consecutive_blocks(new_blocks)
        try:
            self._disk.copy_blocks(
                node.start_block, new_start, min(old_blocks, new_blocks)
            )
        except Exception:
            self._bitmap.free_consecutive_blocks(new_start, new_blocks)
            raise
        self._bitmap.free_consecutive_blocks(node.start_block, old_blocks)
        self.write_inode(
            inode_id,
            replace(
                node,
                start_block=new_start,
                block_count=new_blocks,
                size=new_size,
                modify_time=now,
            ),
        )

    @property
    def total_inodes(self) -> int:
        """Number of inodes in use."""
        return self._count