"""Building blocks for writing TIFF headers and image file directories."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from enum import IntEnum

_MARKS = {"little": b"II", "big": b"MM"}
_PREFIXES = {"little": "<", "big": ">"}


def _check_byteorder(byteorder: str) -> None:
    if byteorder not in _MARKS:
        raise ValueError(f"unknown byte order: {byteorder!r}")


class TiffType(IntEnum):
    """TIFF field types."""

    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12

    @property
    def size(self) -> int:
        """Bytes taken by one value of this type."""
        return _TYPE_SIZES[self]


_TYPE_SIZES = {
    TiffType.BYTE: 1,
    TiffType.ASCII: 1,
    TiffType.SHORT: 2,
    TiffType.LONG: 4,
    TiffType.RATIONAL: 8,
    TiffType.SBYTE: 1,
    TiffType.UNDEFINED: 1,
    TiffType.SSHORT: 2,
    TiffType.SLONG: 4,
    TiffType.SRATIONAL: 8,
    TiffType.FLOAT: 4,
    TiffType.DOUBLE: 8,
}

_SCALAR_FORMATS = {
    TiffType.BYTE: ("B", 0xFF),
    TiffType.ASCII: ("B", 0xFF),
    TiffType.SBYTE: ("B", 0xFF),
    TiffType.UNDEFINED: ("B", 0xFF),
    TiffType.SHORT: ("H", 0xFFFF),
    TiffType.SSHORT: ("H", 0xFFFF),
    TiffType.LONG: ("I", 0xFFFFFFFF),
    TiffType.SLONG: ("I", 0xFFFFFFFF),
}


@dataclass
class TiffHeader:
    """The eight-byte TIFF file header."""

    byteorder: str = sys.byteorder
    offset: int = 8

    def __post_init__(self) -> None:
        _check_byteorder(self.byteorder)

    def to_bytes(self) -> bytes:
        """Byte-order mark, magic number 42 and first IFD offset."""
        return _MARKS[self.byteorder] + struct.pack(
            _PREFIXES[self.byteorder] + "HI", 42, self.offset
        )


@dataclass
class _DirEntry:
    tag: int
    type: TiffType
    count: int
    offset: int = 0
    inline: bytes = bytes(4)

    @property
    def data_size(self) -> int:
        return self.count * self.type.size


class IFD:
    """An image file directory: tagged entries plus their out-of-line data."""

    def __init__(self, byteorder: str | None = None) -> None:
        self.byteorder = byteorder or sys.byteorder
        _check_byteorder(self.byteorder)
        self._entries: list[_DirEntry] = []
        self._data = bytearray()

    @property
    def _prefix(self) -> str:
        return _PREFIXES[self.byteorder]

    def add_entry(self, tag: int, type: int, count: int, data) -> None:
        """Add an entry holding ``count`` values taken from the raw bytes ``data``."""
        entry = _DirEntry(tag, TiffType(type), count, len(self._data))
        raw = self._raw_for(entry, data)
        if entry.data_size > 4:
            new_size = len(self._data) + entry.data_size
            new_size += new_size & 1
            self._data.extend(bytes(new_size - len(self._data)))
        self._entries.append(entry)
        self._store_raw(entry, raw)

    def add_value(self, tag: int, type: int, value) -> None:
        """Add an entry holding a single value stored in the entry itself."""
        entry = _DirEntry(tag, TiffType(type), 1)
        entry.inline = self._pack_scalar(entry.type, value)
        self._entries.append(entry)

    def add_string(self, tag: int, text: str) -> None:
        """Add a NUL-terminated ASCII entry."""
        encoded = text.encode("utf-8") + b"\0"
        self.add_entry(tag, TiffType.ASCII, len(encoded), encoded)

    def set_value(self, tag: int, value) -> None:
        """Replace the value of the entry with ``tag``; unknown tags are ignored.

        Bytes-like values are copied raw; anything else is stored as a
        single value of the entry's type.
        """
        entry = self._find(tag)
        if entry is None:
            return
        if isinstance(value, (bytes, bytearray, memoryview)):
            self._store_raw(entry, self._raw_for(entry, value))
        else:
            if entry.data_size > 4:
                raise ValueError(
                    f"tag {tag} holds {entry.data_size} bytes; pass raw bytes"
                )
            entry.inline = self._pack_scalar(entry.type, value)

    def to_bytes(self, offset: int, has_next: bool) -> bytes:
        """Serialise the directory as if it started at file position ``offset``."""
        self._entries.sort(key=lambda e: e.tag)
        prefix = self._prefix
        count = len(self._entries)
        data_offset = offset + 12 * count + 6
        next_offset = data_offset + len(self._data) if has_next else 0
        out = bytearray(struct.pack(prefix + "H", count))
        for entry in self._entries:
            out += struct.pack(prefix + "HHI", entry.tag, entry.type, entry.count)
            if entry.data_size > 4:
                out += struct.pack(prefix + "I", entry.offset + data_offset)
            else:
                out += entry.inline
        out += struct.pack(prefix + "I", next_offset)
        out += self._data
        return bytes(out)

    def length(self) -> int:
        """Size in bytes of the serialised directory."""
        return 6 + 12 * len(self._entries) + len(self._data)

    def _find(self, tag: int) -> _DirEntry | None:
        return next((e for e in self._entries if e.tag == tag), None)

    @staticmethod
    def _raw_for(entry: _DirEntry, data) -> bytes:
        raw = memoryview(data).tobytes()
        if len(raw) < entry.data_size:
            raise ValueError(
                f"tag {entry.tag} needs {entry.data_size} bytes, got {len(raw)}"
            )
        return raw[: entry.data_size]

    def _store_raw(self, entry: _DirEntry, raw: bytes) -> None:
        if entry.data_size > 4:
            self._data[entry.offset : entry.offset + entry.data_size] = raw
        else:
            entry.inline = raw.ljust(4, b"\0")

    def _pack_scalar(self, type: TiffType, value) -> bytes:
        if type is TiffType.FLOAT:
            return struct.pack(self._prefix + "f", float(value))
        try:
            fmt, mask = _SCALAR_FORMATS[type]
        except KeyError:
            raise ValueError(
                f"type {type.name} does not fit in an entry; use add_entry"
            ) from None
        return struct.pack(self._prefix + fmt, int(value) & mask).ljust(4, b"\0")