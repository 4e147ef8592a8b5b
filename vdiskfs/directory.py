"""In-memory directory: a bounded list of named entries, each pointing at an inode."""

from __future__ import annotations

import enum
import struct
import threading
from dataclasses import dataclass

from .config import NoSpaceError

MAX_ENTRIES = 256
"""Maximum number of entries one directory can hold."""

NAME_SIZE = 64
"""Size of the on-disk name field, including the terminating NUL."""

_COUNT = struct.Struct("<I")
_ENTRY = struct.Struct(f"<I{NAME_SIZE}sB3x")


class EntryType(enum.IntEnum):
    """Kind of object a directory entry refers to."""

    FILE = 1
    DIRECTORY = 2


@dataclass(frozen=True)
class DirectoryEntry:
    """A name bound to an inode."""

    inode_id: int
    name: str
    type: int


def _entry_type(value: int) -> int:
    try:
        return EntryType(value)
    except ValueError:
        return value


class Directory:
    """The entries of one directory, kept in insertion order."""

    def __init__(self, dir_inode_id: int) -> None:
        self._inode_id = dir_inode_id
        self._entries: list[DirectoryEntry] = []
        self._lock = threading.RLock()

    def _lookup(self, name: str) -> int | None:
        return next(
            (i for i, entry in enumerate(self._entries) if entry.name == name), None
        )

    def add_entry(self, name: str, inode_id: int, type: int) -> DirectoryEntry:
        """Add a new entry and return it."""
        encoded = name.encode("utf-8")
        if not encoded or len(encoded) >= NAME_SIZE or b"\0" in encoded:
            raise ValueError(f"invalid entry name: {name!r}")
        if not 0 <= inode_id <= 0xFFFFFFFF:
            raise ValueError(f"invalid inode id: {inode_id}")
        if not 0 <= type <= 0xFF:
            raise ValueError(f"invalid entry type: {type}")
        with self._lock:
            if self._lookup(name) is not None:
                raise FileExistsError(name)
            if len(self._entries) >= MAX_ENTRIES:
                raise NoSpaceError(f"directory holds at most {MAX_ENTRIES} entries")
            entry = DirectoryEntry(inode_id, name, _entry_type(type))
            self._entries.append(entry)
            return entry

    def remove_entry(self, name: str) -> DirectoryEntry:
        """Remove the named entry and return it."""
        with self._lock:
            index = self._lookup(name)
            if index is None:
                raise FileNotFoundError(name)
            return self._entries.pop(index)

    def find_entry(self, name: str) -> DirectoryEntry | None:
        """Return the named entry, or None if there is none."""
        with self._lock:
            index = self._lookup(name)
            return None if index is None else self._entries[index]

    def list_entries(self) -> list[DirectoryEntry]:
        """A copy of all entries, in insertion order."""
        with self._lock:
            return list(self._entries)

    def is_empty(self) -> bool:
        """True if the directory has no entries."""
        with self._lock:
            return not self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def inode_id(self) -> int:
        """Inode id of this directory."""
        return self._inode_id

    def serialize(self) -> bytes:
        """Encode as an entry count followed by fixed-size entry records."""
        with self._lock:
            parts = [_COUNT.pack(len(self._entries))]
            parts.extend(
                _ENTRY.pack(e.inode_id, e.name.encode("utf-8"), e.type)
                for e in self._entries
            )
            return b"".join(parts)

    def deserialize(self, data: bytes) -> None:
        """Replace the entries with those encoded in ``data``."""
        if len(data) < _COUNT.size:
            raise ValueError("directory data too short")
        (count,) = _COUNT.unpack_from(data)
        if count > MAX_ENTRIES or len(data) != _COUNT.size + count * _ENTRY.size:
            raise ValueError("directory data has an invalid size or entry count")
        entries = []
        for inode_id, raw_name, type_ in _ENTRY.iter_unpack(data[_COUNT.size :]):
            name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
            entries.append(DirectoryEntry(inode_id, name, _entry_type(type_)))
        with self._lock:
            self._entries = entries

    def validate(self) -> bool:
        """Check the entry limit and that names are unique."""
        with self._lock:
            names = [entry.name for entry in self._entries]
            return len(names) <= MAX_ENTRIES and len(set(names)) == len(names)