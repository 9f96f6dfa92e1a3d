"""Reading and writing files of little-endian unsigned 64-bit integers."""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterable, Iterator
from os import PathLike
from typing import Union

StrPath = Union[str, "PathLike[str]"]

_ITEM = struct.Struct("<Q")
_BUFFER_ITEMS = 10000


class BinaryFile:
    """Iterable over the 64-bit integers stored in a binary file, read in buffered chunks."""

    def __init__(self, path: StrPath) -> None:
        self.path = path
        try:
            self._file = open(path, "rb")
        except OSError as exc:
            raise ValueError(f"Error opening {path}") from exc
        self._lock = threading.Lock()

    def __iter__(self) -> Iterator[int]:
        pos = 0
        chunk_bytes = _BUFFER_ITEMS * _ITEM.size
        while True:
            with self._lock:
                self._file.seek(pos)
                data = self._file.read(chunk_bytes)
            usable = len(data) - len(data) % _ITEM.size
            if usable == 0:
                return
            pos += usable
            for (value,) in _ITEM.iter_unpack(data[:usable]):
                yield value

    def close(self) -> None:
        """Close the underlying file."""
        self._file.close()

    def __enter__(self) -> BinaryFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def read_uint64s(path: StrPath) -> list[int]:
    """Return every 64-bit integer stored in path."""
    with BinaryFile(path) as source:
        return list(source)


def write_uint64s(path: StrPath, values: Iterable[int]) -> int:
    """Write values to path as little-endian 64-bit integers; return how many were written."""
    count = 0
    buffer = bytearray()
    with open(path, "wb") as out:
        for value in values:
            try:
                buffer += _ITEM.pack(value)
            except struct.error as exc:
                raise ValueError(f"value {value!r} does not fit in 64 unsigned bits") from exc
            count += 1
            if len(buffer) >= _BUFFER_ITEMS * _ITEM.size:
                out.write(buffer)
                buffer.clear()
        out.write(buffer)
    return count