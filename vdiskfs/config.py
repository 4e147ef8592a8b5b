"""Disk geometry, system limits and the exceptions shared across the package."""

DISK_SIZE_MB = 100
"""Default size of a virtual disk, in MiB."""

BLOCK_SIZE = 4096
"""Size of one disk block, in bytes."""

CACHE_PAGES = 16
"""Number of pages held by the block cache."""

MAX_FILES = 1024
"""Maximum number of files (inodes)."""

MAX_DIRS = 64
"""Maximum number of directories."""

MAX_PROCESSES = 8
"""Maximum number of concurrent processes."""

TIME_SLICE_MS = 100
"""Scheduler time slice, in milliseconds."""


class FileSystemError(Exception):
    """Base class for errors raised by the file system."""


class DiskError(FileSystemError):
    """A virtual disk could not be created, opened, read or written."""


class NoSpaceError(FileSystemError):
    """Not enough free blocks (or no long enough free run) to satisfy a request."""