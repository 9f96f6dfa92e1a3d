"""Benchmark command: build, check, save, load and time minimal perfect hash functions."""

from __future__ import annotations

import math
import re
import sys
import time
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass
from itertools import accumulate
from os import PathLike
from typing import Optional, Protocol, TextIO, Union

from bbhash.bitvector import BitVector
from bbhash.fileio import BinaryFile, write_uint64s
from bbhash.hashing import MASK64
from bbhash.keys import MT19937_64, evenly_spaced_keys, koren_xor
from bbhash.mphf import Mphf

StrPath = Union[str, "PathLike[str]"]

NB_BUCKETS = 96
MPHF_PER_BUCKET = 96
KEY_FILE = "keyfile"
BENCH_FILE = "benchfile"
SAVED_MPHF_FILE = "saved_mphf"
LOOKUPS_PER_SAMPLE = 1 << 16
BENCH_RUNS = 10
BENCH_FILE_MAX = 10_000_000
ON_THE_FLY_BENCH_KEYS = 1_000_000
OUT_QUERY_COUNT = 100_000_000
_EXTRA_KEYS = 100


class _Lookup(Protocol):
    def lookup(self, key: int) -> Optional[int]: ...


class StatsAccumulator:
    """Running mean and variance of a stream of samples (Welford's method)."""

    def __init__(self) -> None:
        self._n = 0
        self._mean = 0.0
        self._m2 = 0.0

    def add(self, x: float) -> None:
        """Add one sample."""
        self._n += 1
        delta = x - self._mean
        self._mean += delta / self._n
        self._m2 += delta * (x - self._mean)

    def mean(self) -> float:
        """Mean of the samples; 0 when there are none."""
        return self._mean

    def variance(self) -> float:
        """Sample variance; NaN with fewer than two samples."""
        if self._n < 2:
            return math.nan
        return self._m2 / (self._n - 1)

    def relative_stddev(self) -> float:
        """Standard deviation as a percentage of the mean; NaN when undefined."""
        variance = self.variance()
        if math.isnan(variance) or self._mean == 0:
            return math.nan
        return math.sqrt(variance) / self._mean * 100


class BucketedMphf:
    """Keys split over 96 x 96 small functions, combined into one minimal perfect hash."""

    def __init__(
        self,
        keys_path: StrPath,
        nthreads: int = 1,
        gamma: float = 1.0,
        write_each: bool = True,
        workdir: Optional[StrPath] = None,
    ) -> None:
        if nthreads < 1 or NB_BUCKETS % nthreads:
            raise ValueError(f"nthreads must be a divisor of {NB_BUCKETS}")
        total = NB_BUCKETS * MPHF_PER_BUCKET
        groups: list[list[int]] = [[] for _ in range(total)]
        with BinaryFile(keys_path) as source:
            for key in source:
                groups[koren_xor(key) % total].append(key)

        self._offsets = list(accumulate((len(g) for g in groups[:-1]), initial=0))
        self._nelem = sum(len(g) for g in groups)
        self._mphfs: list[Optional[Mphf]] = [None] * total

        def build_bucket(bucket: int) -> None:
            first = bucket * MPHF_PER_BUCKET
            for idx in range(first, first + MPHF_PER_BUCKET):
                keys = groups[idx]
                if keys:
                    self._mphfs[idx] = Mphf(
                        len(keys), keys, 1, float(gamma), write_each, False, workdir=workdir
                    )

        with ThreadPoolExecutor(max_workers=nthreads) as pool:
            list(pool.map(build_bucket, range(NB_BUCKETS)))

    def __len__(self) -> int:
        return self._nelem

    def lookup(self, key: int) -> Optional[int]:
        """Return the index of key in [0, n), or None when it is known not to be in the set."""
        idx = koren_xor(key) % (NB_BUCKETS * MPHF_PER_BUCKET)
        mphf = self._mphfs[idx]
        if mphf is None:
            return None
        value = mphf.lookup(key)
        return None if value is None else value + self._offsets[idx]


def _count_problems(
    mphf: _Lookup, keys: Iterable[int], nelem: int, out: TextIO, report: bool
) -> tuple[int, int]:
    collisions = 0
    range_problems = 0
    check_table = BitVector(nelem)
    for key in keys:
        value = mphf.lookup(key)
        if value is None or value >= nelem:
            range_problems += 1
            continue
        if check_table[value] == 0:
            check_table.set(value)
        else:
            if report:
                print("collision for %d  mphf_value %d" % (key, value), file=out)
            collisions += 1
    return collisions, range_problems


def check_mphf_correctness(
    mphf: _Lookup, keys: Iterable[int], nelem: int, out: Optional[TextIO] = None
) -> tuple[int, int]:
    """Check that keys map one-to-one into [0, nelem); return (collisions, out of range)."""
    stream = out if out is not None else sys.stdout
    collisions, range_problems = _count_problems(mphf, keys, nelem, stream, True)
    if collisions == 0 and range_problems == 0:
        print(" --- boophf working correctly --- ", file=stream)
    else:
        print(
            "!!! problem, %d collisions detected; %d out of range !!!"
            % (collisions, range_problems),
            file=stream,
        )
    return collisions, range_problems


def _bench(mphf: _Lookup, keys: Iterable[int], out: TextIO, label: str) -> tuple[StatsAccumulator, int]:
    sample = list(keys)
    print("bench lookups  sample size %d " % len(sample), file=out)
    stats = StatsAccumulator()
    fingerprint = 0
    lookups = 0
    tick = time.perf_counter()
    for _ in range(BENCH_RUNS):
        for key in sample:
            value = mphf.lookup(key)
            fingerprint = (fingerprint + (MASK64 if value is None else value)) & MASK64
            lookups += 1
            if lookups == LOOKUPS_PER_SAMPLE:
                elapsed_us = (time.perf_counter() - tick) * 1e6
                stats.add(elapsed_us / lookups)
                tick = time.perf_counter()
                lookups = 0
    print(
        "%s bench lookups average %.2f ns +- stddev  %.2f %%   (fingerprint %d)  "
        % (label, 1000.0 * stats.mean(), stats.relative_stddev(), fingerprint),
        file=out,
    )
    return stats, fingerprint


def bench_mphf_lookup(
    mphf: _Lookup, keys: Iterable[int], out: Optional[TextIO] = None
) -> tuple[StatsAccumulator, int]:
    """Time repeated lookups of keys; return the per-lookup statistics and a fingerprint."""
    return _bench(mphf, keys, out if out is not None else sys.stdout, "BBhash")


@dataclass
class _Options:
    nelem: int
    nthreads: int
    gamma: int
    check: bool = False
    bench: bool = False
    save: bool = False
    load: bool = False
    from_disk: bool = True
    buckets: bool = False
    out_query: bool = False
    on_the_fly: bool = False
    write_each: bool = True


@dataclass
class _EvenRange:
    nb_elem: int
    stop: int

    def __iter__(self) -> Iterator[int]:
        return evenly_spaced_keys(self.nb_elem, self.stop)


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _strtoul(text: str) -> int:
    try:
        return int(text.strip(), 0)
    except ValueError:
        return _atoi(text)


_FLAGS = {
    "-check": ("check", True),
    "-bench": ("bench", True),
    "-save": ("save", True),
    "-load": ("load", True),
    "-inram": ("from_disk", False),
    "-buckets": ("buckets", True),
    "-outquery": ("out_query", True),
    "-onthefly": ("on_the_fly", True),
    "-nodisk": ("write_each", False),
}


def parse_args(argv: list[str]) -> _Options:
    """Parse <nelem> <nthreads> <gamma> [options]; raise ValueError on bad input."""
    if len(argv) < 3:
        raise ValueError("missing arguments")
    opts = _Options(_strtoul(argv[0]), _atoi(argv[1]), _atoi(argv[2]))
    for arg in argv[3:]:
        if arg in _FLAGS:
            name, value = _FLAGS[arg]
            setattr(opts, name, value)
    if opts.gamma == 0:
        raise ValueError("gamma value error")
    if opts.nelem <= 0:
        raise ValueError("nelem must be positive")
    if opts.nthreads < 1:
        raise ValueError("nthreads must be at least 1")
    return opts


def _usage(prog: str) -> None:
    print("Usage :")
    print(f"{prog} <nelem> <nthreads> <gamma>  [options]")
    print("Options:")
    print("\t-check  (check correctness of mphf)")
    print("\t-bench  (bench query time of mphf)")
    print("\t-save")
    print("\t-load")
    print("\t-inram")
    print("\t-nodisk  (do not write each intermediate level on disk)")
    print("\t-buckets")
    print("\t-outquery (bench the fp rate of the mphf)")
    print("\t-onthefly (generates key on the fly without storing them on disk or in ram)")


def _random_keys(nelem: int) -> list[int]:
    rng = MT19937_64()
    data = [0]
    data.extend(rng() for _ in range(nelem + _EXTRA_KEYS - 1))
    print("de-duplicating items ")
    unique = sorted(set(data))
    print("found %d duplicated items  " % (len(data) - len(unique)))
    if len(unique) < nelem:
        raise ValueError(f"only {len(unique)} distinct keys generated, {nelem} requested")
    return unique[:nelem]


def _write_bench_file(nelem: int) -> None:
    stride = max(nelem // BENCH_FILE_MAX, 1)
    with BinaryFile(KEY_FILE) as source:
        write_uint64s(BENCH_FILE, (key for cpt, key in enumerate(source) if cpt % stride == 0))


def _run_buckets(opts: _Options) -> int:
    start = time.perf_counter()
    print("splitting keys ..")
    bucketed = BucketedMphf(KEY_FILE, opts.nthreads, float(opts.gamma), opts.write_each)
    elapsed = time.perf_counter() - start
    print("BooPHF constructed perfect hash for %d keys in %.2fs" % (opts.nelem, elapsed))

    if opts.check:
        keys = _EvenRange(opts.nelem, opts.nelem)
        collisions, problems = _count_problems(bucketed, keys, opts.nelem, sys.stdout, False)
        print("there is %d problems" % problems)
        print("there is %d coll" % collisions)

    if opts.bench:
        with BinaryFile(BENCH_FILE) as source:
            _bench(bucketed, source, sys.stdout, "BBhash buckets")
    return 0


def _out_query(mphf: Mphf, nelem: int) -> None:
    rng = MT19937_64()
    queries = [rng() for _ in range(OUT_QUERY_COUNT)]
    nb_fp = 0
    nb_out_of_range = 0
    for key in queries:
        value = mphf.lookup(key)
        if value is not None:
            nb_fp += 1
            if value >= nelem:
                nb_out_of_range += 1
    tick = time.perf_counter()
    for key in queries:
        mphf.lookup(key)
    elapsed_us = (time.perf_counter() - tick) * 1e6
    print(
        "query %d elem  out of set  FP rate %.2f   nb issues %d    lookup %.2f  ns "
        % (OUT_QUERY_COUNT, nb_fp / OUT_QUERY_COUNT, nb_out_of_range,
           1000.0 * elapsed_us / OUT_QUERY_COUNT)
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Run the benchmark command: bench <nelem> <nthreads> <gamma> [options]."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts = parse_args(args)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        _usage("bench")
        return 1

    nelem = opts.nelem
    data: list[int] = []
    if not opts.from_disk and not opts.buckets:
        data = _random_keys(nelem)
    elif not opts.on_the_fly:
        write_uint64s(KEY_FILE, evenly_spaced_keys(nelem, nelem))
        print("key file generated ")
        if opts.bench:
            _write_bench_file(nelem)

    if opts.buckets:
        return _run_buckets(opts)

    with ExitStack() as stack:

        def key_source() -> Iterable[int]:
            if opts.on_the_fly:
                return _EvenRange(nelem, nelem)
            if opts.from_disk:
                return stack.enter_context(BinaryFile(KEY_FILE))
            return data

        if not opts.load:
            print("Construct a BooPHF with  %d elements  " % nelem)
            start = time.perf_counter()
            mphf = Mphf(nelem, key_source(), opts.nthreads, float(opts.gamma), opts.write_each)
            elapsed = time.perf_counter() - start
            print("BooPHF constructed perfect hash for %d keys in %.2fs" % (nelem, elapsed))
        else:
            print("Loading a BooPHF with  %d elements  " % nelem)
            start = time.perf_counter()
            with open(SAVED_MPHF_FILE, "rb") as stream:
                mphf = Mphf.load(stream)
            elapsed = time.perf_counter() - start
            print("BooPHF re-loaded perfect hash for %d keys in %.2fs" % (nelem, elapsed))
        print("boophf  bits/elem : %f" % (mphf.total_bit_size() / nelem))

        if opts.save:
            with open(SAVED_MPHF_FILE, "wb") as stream:
                mphf.save(stream)

        if opts.check:
            check_mphf_correctness(mphf, key_source(), nelem)

        if opts.bench:
            if opts.on_the_fly:
                bench_keys: Iterable[int] = _EvenRange(nelem, ON_THE_FLY_BENCH_KEYS)
            elif opts.from_disk:
                bench_keys = stack.enter_context(BinaryFile(BENCH_FILE))
            else:
                bench_keys = data
            bench_mphf_lookup(mphf, bench_keys)

        if opts.out_query:
            _out_query(mphf, nelem)

    return 0