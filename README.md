# vdiskfs

vdiskfs is a small file system kept inside one ordinary file on the host. That
file is the virtual disk. The package has these parts:

- `vdiskfs.disk.VirtualDisk` creates the disk file and opens it. It reads and
  writes the file in fixed-size blocks and can copy a run of blocks.
- `vdiskfs.bitmap.FreeBitmap` is a bitmap of free and used blocks. It allocates
  the lowest free block, or the first run of consecutive free blocks, and frees
  them again. It can also check its own free count (`validate`), print a status
  report, and save its bits as bytes and load them back.
- `vdiskfs.cache.CacheManager` is a write-back block cache over a
  `VirtualDisk`. It holds a fixed number of pages and replaces them first in,
  first out. Dirty pages are written to disk when they are evicted, when
  `flush_all()` is called, and when the cache is closed.
- `vdiskfs.directory.Directory` is an in-memory list of named entries, at most
  256 of them. Each entry is a `DirectoryEntry` with `inode_id`, `name` and
  `type`. A directory can be serialized to bytes and read back.
- `vdiskfs.inode.INodeManager` keeps the inode table on disk. The table starts
  at block `INODE_TABLE_START` and covers `INODE_TABLE_BLOCKS` blocks. Each file
  is stored in consecutive blocks, and `resize_inode` grows a file in place
  when it can and moves it to a new run of blocks when it cannot.

Errors are raised as exceptions. `vdiskfs.config` defines `FileSystemError` and
two subclasses of it. `DiskError` means the disk file could not be created,
opened, read or written, or a block number is out of range. `NoSpaceError`
means there are no free blocks, no long enough run of free blocks, no free
inode or no room left in a directory. Some calls also raise built-in
exceptions:

- Invalid arguments raise `ValueError`.
- `Directory.add_entry` raises `FileExistsError` when the name is already there.
- `Directory.remove_entry` and `INodeManager.delete_inode` raise
  `FileNotFoundError`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from vdiskfs.bitmap import FreeBitmap
from vdiskfs.disk import VirtualDisk
from vdiskfs.inode import (
    INODE_TABLE_BLOCKS,
    INODE_TABLE_START,
    INodeManager,
    INodeType,
)

disk = VirtualDisk("disk.img", 4, 4096)
disk.create("disk.img", 4)          # zero-filled 4 MiB file, opened for use
with disk:
    bitmap = FreeBitmap(disk.total_blocks)
    # The inode manager does not reserve its own table blocks; do it here.
    for block in range(INODE_TABLE_START + INODE_TABLE_BLOCKS):
        bitmap.mark_block_used(block)

    inodes = INodeManager(disk, bitmap)
    inode_id = inodes.create_inode(0, INodeType.FILE, "notes.txt", 10_000)
    node = inodes.read_inode(inode_id)
    print(node.name, node.start_block, node.block_count)

    inodes.resize_inode(inode_id, 20_000)
    print(inodes.find_inode(0, "notes.txt"), inodes.total_inodes)
    print(bitmap.status_report())
```

`VirtualDisk` works as a context manager. Entering the `with` block opens the
existing disk file, and leaving it closes the file.

Block caching:

```python
from vdiskfs.cache import CacheManager
from vdiskfs.disk import VirtualDisk

with VirtualDisk("disk.img", 4, 4096) as disk:
    with CacheManager(disk, 16, 4096) as cache:
        cache.write_block(5, bytes(4096))
        data = cache.read_block(5)
    # dirty pages are written back when the cache is closed
```

Directories:

```python
from vdiskfs.directory import Directory, EntryType

root = Directory(0)
root.add_entry("docs", 1, EntryType.DIRECTORY)
raw = root.serialize()

copy = Directory(0)
copy.deserialize(raw)
print([entry.name for entry in copy.list_entries()])
```

## What it does not do

- **No file contents.** There is no layer that resolves paths or reads and
  writes file data. Inodes record where a file's blocks are. Reading or
  writing those blocks is done with `VirtualDisk` or `CacheManager` directly.
- **Directories stay in memory.** `Directory` objects are not stored on disk
  by the package. `serialize()` gives their bytes, and storing those bytes is
  up to the caller.
- **The bitmap is not saved.** The free-block bitmap is not written to the
  disk. Use `to_bytes()` and `load_bytes()` to keep it.
- **Directory inodes keep their block.** Deleting a directory inode does not
  free its data block. Only file inodes give their blocks back.
- **No command-line program.** The package is a library and has no command to
  run.
- **No process scheduling or synchronisation.** `MAX_PROCESSES` and
  `TIME_SLICE_MS` in `vdiskfs.config` are plain constants and nothing in the
  package uses them.