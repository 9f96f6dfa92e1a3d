"""Minimal perfect hash function built from a cascade of collision-free bit arrays."""

from __future__ import annotations

import math
import struct
import tempfile
import threading
from collections.abc import Iterable, Iterator
from contextlib import ExitStack
from dataclasses import dataclass, field
from itertools import islice
from os import PathLike
from pathlib import Path
from typing import BinaryIO, BinaryIO as _Stream, Optional, Union

from bbhash.bitvector import BitVector
from bbhash.fileio import BinaryFile
from bbhash.hashing import SingleHasher, XorshiftHashFunctors, fastrange64
from bbhash.progress import Progress

NB_LEVELS = 25
NBBUFF = 10000
_DEFAULT_MAX_LEVEL = 100
_FINAL_HASH_BYTES_PER_ELEM = 42

StrPath = Union[str, "PathLike[str]"]

_HEADER = struct.Struct("<diQQ")
_U64 = struct.Struct("<Q")
_PAIR = struct.Struct("<QQ")


def _read_exact(stream: _Stream, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise EOFError(f"expected {size} bytes, got {len(data)}")
    return data


def _collision_probability(gamma: float, nelem: int) -> float:
    base = (gamma * nelem - 1) / (gamma * nelem)
    return 1.0 - base ** (nelem - 1)


def _make_levels(hash_domain: int, proba: float, nb_levels: int) -> list[Level]:
    levels = []
    previous_idx = 0
    for ii in range(nb_levels):
        # rounded up to a multiple of 64 so that a level can be cleared word by word
        domain = ((int(hash_domain * proba**ii) + 63) // 64) * 64
        if domain == 0:
            domain = 64
        levels.append(Level(previous_idx, domain))
        previous_idx += domain
    return levels


def _level_file(tmpdir: Path, i: int) -> Path:
    return tmpdir / f"temp_level_{i}"


@dataclass
class Level:
    """One bit array of the cascade, covering hash_domain positions."""

    idx_begin: int = 0
    hash_domain: int = 0
    bitset: BitVector = field(default_factory=BitVector)

    def get(self, hash_raw: int) -> int:
        """Return the bit that hash_raw maps to in this level."""
        return self.bitset[fastrange64(hash_raw, self.hash_domain)]


class Mphf:
    """Minimal perfect hash function over a set of distinct 64-bit integer keys."""

    def __init__(
        self,
        n: int = 0,
        keys: Iterable[int] = (),
        num_thread: int = 1,
        gamma: float = 2.0,
        write_each: bool = True,
        progress: bool = True,
        perc_elem_loaded: float = 0.03,
        hasher: Optional[SingleHasher] = None,
        workdir: Optional[StrPath] = None,
    ) -> None:
        if n < 0:
            raise ValueError("number of keys must be non-negative")
        if num_thread < 1:
            raise ValueError("num_thread must be at least 1")
        if not gamma > 0:
            raise ValueError("gamma must be positive")
        self._reset(hasher)
        self._gamma = float(gamma)
        self._nelem = int(n)
        self._hash_domain = math.ceil(n * self._gamma)
        if n == 0:
            return

        self._num_thread = num_thread
        self._write_each = bool(write_each)
        self._fastmode = perc_elem_loaded > 0.0 and not self._write_each
        self._proba_collision = _collision_probability(self._gamma, self._nelem)
        self._nb_levels = NB_LEVELS
        self._levels = _make_levels(self._hash_domain, self._proba_collision, NB_LEVELS)
        self._fast_level = next(
            (ii for ii in range(NB_LEVELS) if self._proba_collision**ii < perc_elem_loaded),
            NB_LEVELS,
        )
        self._fast_set = [0] * int(perc_elem_loaded * self._nelem) if self._fastmode else []
        self._fast_count = 0

        if progress:
            self._start_progress(num_thread)

        if iter(keys) is keys:
            keys = list(keys)

        offset = 0
        with ExitStack() as stack:
            tmpdir = None
            if self._write_each:
                tmpdir = Path(
                    stack.enter_context(tempfile.TemporaryDirectory(prefix="bbhash-", dir=workdir))
                )
            for ii, level in enumerate(self._levels):
                self._temp_bitset = BitVector(level.hash_domain)
                self._process_level(keys, ii, tmpdir)
                level.bitset.clear_collisions(0, level.hash_domain, self._temp_bitset)
                offset = level.bitset.build_ranks(offset)
        self._temp_bitset = None

        if self._progress_bar is not None:
            self._progress_bar.finish_threaded()

        self._last_rank = offset
        self._fast_set = []
        self._built = True

    def _reset(self, hasher: Optional[SingleHasher]) -> None:
        self._hasher = XorshiftHashFunctors(hasher)
        self._levels: list[Level] = []
        self._nb_levels = 0
        self._gamma = 0.0
        self._nelem = 0
        self._hash_domain = 0
        self._proba_collision = 0.0
        self._final_hash: dict[int, int] = {}
        self._last_rank = 0
        self._built = False
        self._write_each = False
        self._fastmode = False
        self._fast_level = NB_LEVELS
        self._fast_set: list[int] = []
        self._fast_count = 0
        self._hash_idx = 0
        self._num_thread = 1
        self._progress_bar: Optional[Progress] = None
        self._temp_bitset: Optional[BitVector] = None
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()

    def _start_progress(self, num_thread: int) -> None:
        proba = self._proba_collision
        sum_geom_read = 1.0 / (1.0 - proba) if proba < 1.0 else float(self._nb_levels)
        total_write_each = sum_geom_read + 1.0
        total_raw = float(self._nb_levels)
        fl = self._fast_level
        total_fastmode = (fl + 1) + proba**fl * (self._nb_levels - (fl + 1))
        print(
            "for info, total work write each  : %.3f    total work inram from level %i : %.3f  "
            "total work raw : %.3f " % (total_write_each, fl, total_fastmode, total_raw)
        )
        if self._write_each:
            total = total_write_each
        elif self._fastmode:
            total = total_fastmode
        else:
            total = total_raw
        self._progress_bar = Progress(timer_mode=True)
        self._progress_bar.init(int(self._nelem * total), "Building BooPHF", num_thread)

    def _get_level(
        self, state: list[int], key: int, maxlevel: int = _DEFAULT_MAX_LEVEL, minlevel: int = 0
    ) -> tuple[int, int]:
        """Return the level key falls into and the last hash computed for it."""
        level = 0
        hash_raw = 0
        hasher = self._hasher
        for ii in range(min(self._nb_levels - 1, maxlevel)):
            if ii == 0:
                hash_raw = hasher.h0(state, key)
            elif ii == 1:
                hash_raw = hasher.h1(state, key)
            else:
                hash_raw = hasher.next(state)
            if ii >= minlevel and self._levels[ii].get(hash_raw):
                break
            level += 1
        return level, hash_raw

    def _insert_into_level(self, level_hash: int, i: int) -> None:
        level = self._levels[i]
        pos = fastrange64(level_hash, level.hash_domain)
        if level.bitset.test_and_set(pos):
            self._temp_bitset.test_and_set(pos)

    def _process_level(self, keys: Iterable[int], i: int, tmpdir: Optional[Path]) -> None:
        self._levels[i].bitset = BitVector(self._levels[i].hash_domain)
        last = self._nb_levels - 1
        errors: list[BaseException] = []

        with ExitStack() as stack:
            curr_file = None
            if self._write_each:
                if i > 2:
                    _level_file(tmpdir, i - 2).unlink(missing_ok=True)
                if 0 < i < last:
                    curr_file = stack.enter_context(open(_level_file(tmpdir, i), "wb"))

            source: Iterable[int]
            if self._write_each and i > 1:
                source = stack.enter_context(BinaryFile(_level_file(tmpdir, i - 1)))
            elif self._fastmode and i >= self._fast_level + 1:
                source = self._fast_set
            else:
                source = keys
            shared = iter(source)

            self._hash_idx = 0
            self._fast_count = 0

            def work(tid: int) -> None:
                try:
                    self._run_worker(shared, i, tid, curr_file)
                except BaseException as exc:  # re-raised in the calling thread
                    with self._lock:
                        errors.append(exc)

            threads = [threading.Thread(target=work, args=(tid,)) for tid in range(self._num_thread)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        if errors:
            raise errors[0]

        if self._fastmode and i == self._fast_level:
            del self._fast_set[self._fast_count:]

        if self._write_each and i == last:
            _level_file(tmpdir, i - 1).unlink(missing_ok=True)

    def _flush(self, curr_file: BinaryIO, buffer: list[int]) -> None:
        data = struct.pack(f"<{len(buffer)}Q", *buffer)
        with self._write_lock:
            curr_file.write(data)
        buffer.clear()

    def _run_worker(
        self, shared: Iterator[int], i: int, tid: int, curr_file: Optional[BinaryIO]
    ) -> None:
        last = self._nb_levels - 1
        hasher = self._hasher
        write_buffer: list[int] = []
        nb_done = 0
        while True:
            with self._lock:
                chunk = list(islice(shared, NBBUFF))
            if not chunk:
                break
            for key in chunk:
                state = [0, 0]
                if self._write_each:
                    level, _ = self._get_level(state, key, i, i - 1)
                else:
                    level, _ = self._get_level(state, key, i)

                if level == i:
                    if self._fastmode and i == self._fast_level:
                        with self._lock:
                            idx = self._fast_count
                            self._fast_count += 1
                            if idx >= len(self._fast_set):
                                self._fastmode = False
                            else:
                                self._fast_set[idx] = key

                    if i == last:
                        with self._lock:
                            self._final_hash[key] = self._hash_idx
                            self._hash_idx += 1
                    else:
                        if curr_file is not None:
                            if len(write_buffer) >= NBBUFF:
                                self._flush(curr_file, write_buffer)
                            write_buffer.append(key)
                        if level == 0:
                            level_hash = hasher.h0(state, key)
                        elif level == 1:
                            level_hash = hasher.h1(state, key)
                        else:
                            level_hash = hasher.next(state)
                        self._insert_into_level(level_hash, i)

                nb_done += 1
                if nb_done & 1023 == 0 and self._progress_bar is not None:
                    self._progress_bar.inc(nb_done, tid)
                    nb_done = 0

        if curr_file is not None and write_buffer:
            self._flush(curr_file, write_buffer)

    def lookup(self, key: int) -> Optional[int]:
        """Return the index of key in [0, n), or None when the key is known not to be in the set."""
        if not self._built:
            return None
        state = [0, 0]
        level, level_hash = self._get_level(state, key)
        if level == self._nb_levels - 1:
            idx = self._final_hash.get(key)
            return None if idx is None else idx + self._last_rank
        lvl = self._levels[level]
        return lvl.bitset.rank(fastrange64(level_hash, lvl.hash_domain))

    def nb_keys(self) -> int:
        """Number of keys the function was built for."""
        return self._nelem

    def total_bit_size(self) -> int:
        """Approximate memory footprint in bits; also prints a breakdown."""
        bitsets = sum(level.bitset.bit_size() for level in self._levels)
        final_bits = len(self._final_hash) * _FINAL_HASH_BYTES_PER_ELEM * 8
        total = bitsets + final_bits
        if total == 0:
            return 0
        print("Bitarray    %d  bits (%.2f %%)   (array + ranks )" % (bitsets, 100 * bitsets / total))
        print(
            "Last level hash  %12d  bits (%.2f %%) (nb in last level hash %d)"
            % (final_bits, 100 * final_bits / total, len(self._final_hash))
        )
        return total

    def save(self, stream: BinaryIO) -> None:
        """Write the function in binary form."""
        if not self._built:
            raise ValueError("cannot save a function that has not been built")
        stream.write(_HEADER.pack(self._gamma, self._nb_levels, self._last_rank, self._nelem))
        for level in self._levels:
            level.bitset.save(stream)
        stream.write(_U64.pack(len(self._final_hash)))
        for key, value in self._final_hash.items():
            stream.write(_PAIR.pack(key, value))

    @classmethod
    def load(cls, stream: BinaryIO, hasher: Optional[SingleHasher] = None) -> Mphf:
        """Read a function written by save; hasher must match the one used to build it."""
        obj = cls.__new__(cls)
        obj._reset(hasher)
        gamma, nb_levels, last_rank, nelem = _HEADER.unpack(_read_exact(stream, _HEADER.size))
        if nb_levels < 1 or not gamma > 0 or nelem == 0:
            raise ValueError("corrupt function header")
        bitsets = [BitVector.load(stream) for _ in range(nb_levels)]

        obj._gamma = gamma
        obj._nb_levels = nb_levels
        obj._last_rank = last_rank
        obj._nelem = nelem
        obj._proba_collision = _collision_probability(gamma, nelem)
        obj._hash_domain = math.ceil(nelem * gamma)
        obj._levels = _make_levels(obj._hash_domain, obj._proba_collision, nb_levels)
        for level, bitset in zip(obj._levels, bitsets):
            level.bitset = bitset

        (final_size,) = _U64.unpack(_read_exact(stream, _U64.size))
        for _ in range(final_size):
            key, value = _PAIR.unpack(_read_exact(stream, _PAIR.size))
            obj._final_hash[key] = value
        obj._built = True
        return obj