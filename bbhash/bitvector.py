"""Bit array with sampled rank support."""

from __future__ import annotations

import struct
import threading
from typing import BinaryIO

from bbhash.hashing import MASK64, popcount_64

BITS_PER_RANK_SAMPLE = 512
_WORDS_PER_SAMPLE = BITS_PER_RANK_SAMPLE // 64


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


def _read_u64(stream: BinaryIO) -> int:
    return struct.unpack("<Q", _read_exact(stream, 8))[0]


def _read_u64_array(stream: BinaryIO, count: int) -> list[int]:
    if count == 0:
        return []
    return list(struct.unpack(f"<{count}Q", _read_exact(stream, 8 * count)))


class BitVector:
    """Fixed-size array of bits stored in 64-bit words, with rank queries."""

    def __init__(self, size: int = 0) -> None:
        if size < 0:
            raise ValueError("size must be non-negative")
        self._size = size
        self._words = [0] * (1 + size // 64)
        self._ranks: list[int] = []
        self._rank_capacity = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return self._size

    def _check(self, pos: int) -> None:
        if not 0 <= pos < self._size:
            raise IndexError(f"bit position {pos} out of range for size {self._size}")

    def __getitem__(self, pos: int) -> int:
        self._check(pos)
        return (self._words[pos >> 6] >> (pos & 63)) & 1

    def resize(self, new_size: int) -> None:
        """Change the number of bits, keeping the existing words."""
        if new_size < 0:
            raise ValueError("size must be non-negative")
        nchar = 1 + new_size // 64
        if nchar > len(self._words):
            self._words.extend([0] * (nchar - len(self._words)))
        else:
            del self._words[nchar:]
        self._size = new_size

    def bit_size(self) -> int:
        """Memory footprint in bits of the array and its rank samples."""
        return len(self._words) * 64 + self._rank_capacity * 64

    def clear(self) -> None:
        """Set every bit to zero."""
        self._words = [0] * len(self._words)

    @staticmethod
    def _check_aligned(start: int, size: int) -> None:
        if start % 64 or size % 64:
            raise ValueError("start and size must be multiples of 64")

    def clear_range(self, start: int, size: int) -> None:
        """Zero bits in [start, start + size); both must be multiples of 64."""
        self._check_aligned(start, size)
        first = start // 64
        for idx in range(first, first + size // 64):
            self._words[idx] = 0

    def clear_collisions(self, start: int, size: int, collisions: BitVector) -> None:
        """Clear bits marked in collisions over an aligned interval, then empty collisions."""
        self._check_aligned(start, size)
        first = start // 64
        for offset in range(size // 64):
            self._words[first + offset] &= ~collisions.get64(offset) & MASK64
        collisions.clear()

    def test_and_set(self, pos: int) -> int:
        """Atomically set bit pos and return its previous value."""
        self._check(pos)
        idx, bit = pos >> 6, 1 << (pos & 63)
        with self._lock:
            old = self._words[idx]
            self._words[idx] = old | bit
        return 1 if old & bit else 0

    def get64(self, cell: int) -> int:
        """Return the 64-bit word at index cell."""
        return self._words[cell]

    def set(self, pos: int) -> None:
        """Set bit pos to 1."""
        self._check(pos)
        with self._lock:
            self._words[pos >> 6] |= 1 << (pos & 63)

    def reset(self, pos: int) -> None:
        """Set bit pos to 0."""
        self._check(pos)
        with self._lock:
            self._words[pos >> 6] &= ~(1 << (pos & 63)) & MASK64

    def build_ranks(self, offset: int = 0) -> int:
        """Sample ranks every 512 bits, shifted by offset; return offset plus the bit count."""
        self._ranks = []
        current = offset
        for idx, word in enumerate(self._words):
            if idx % _WORDS_PER_SAMPLE == 0:
                self._ranks.append(current)
            current += popcount_64(word)
        self._rank_capacity = max(2 + self._size // BITS_PER_RANK_SAMPLE, len(self._ranks))
        return current

    def rank(self, pos: int) -> int:
        """Number of set bits before pos, plus the offset given to build_ranks."""
        if not self._ranks:
            raise ValueError("ranks have not been built")
        word_idx, word_offset = divmod(pos, 64)
        block = pos // BITS_PER_RANK_SAMPLE
        r = self._ranks[block]
        r += sum(popcount_64(w) for w in self._words[block * _WORDS_PER_SAMPLE:word_idx])
        r += popcount_64(self._words[word_idx] & ((1 << word_offset) - 1))
        return r

    def save(self, stream: BinaryIO) -> None:
        """Write the bit array and its ranks in little-endian binary form."""
        stream.write(struct.pack("<QQ", self._size, len(self._words)))
        stream.write(struct.pack(f"<{len(self._words)}Q", *self._words))
        stream.write(struct.pack("<Q", len(self._ranks)))
        if self._ranks:
            stream.write(struct.pack(f"<{len(self._ranks)}Q", *self._ranks))

    @classmethod
    def load(cls, stream: BinaryIO) -> BitVector:
        """Read a bit array written by save."""
        size = _read_u64(stream)
        _read_u64(stream)  # stored word count; recomputed from size
        vector = cls(size)
        vector._words = _read_u64_array(stream, len(vector._words))
        nranks = _read_u64(stream)
        vector._ranks = _read_u64_array(stream, nranks)
        vector._rank_capacity = nranks
        return vector