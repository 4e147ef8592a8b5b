"""A small file system on a virtual disk file: block bitmap, page cache, directories and inodes."""

__version__ = "0.1.0"