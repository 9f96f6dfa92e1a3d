"""Small demonstration commands building a function over random keys."""

from __future__ import annotations

import sys
import time
from typing import Optional, TextIO

from bbhash.hashing import MASK64, SingleHasher
from bbhash.keys import random_unique_keys
from bbhash.mphf import Mphf

_EXTRA_KEYS = 100


def custom_uint64_hash(key: int, seed: int = 0) -> int:
    """Murmur3 finaliser of key, xored with seed."""
    key &= MASK64
    key ^= key >> 33
    key = (key * 0xFF51AFD7ED558CCD) & MASK64
    key ^= key >> 33
    key = (key * 0xC4CEB9FE1A85EC53) & MASK64
    key ^= key >> 33
    return key ^ (seed & MASK64)


def run_example(
    nelem: int,
    nthreads: int = 1,
    gamma: float = 1.0,
    hasher: Optional[SingleHasher] = None,
    out: Optional[TextIO] = None,
) -> Mphf:
    """Build a function over nelem random unique keys, report on it and return it."""
    if nelem < 1:
        raise ValueError("nelem must be at least 1")
    stream = out if out is not None else sys.stdout
    total = nelem + _EXTRA_KEYS
    print("de-duplicating items ", file=stream)
    keys = random_unique_keys(nelem, _EXTRA_KEYS)
    nb_unique = len(set(keys))
    print(f"found {total - max(nb_unique, 0) - (total - nelem - _EXTRA_KEYS) - _EXTRA_KEYS + _EXTRA_KEYS - (nelem - nb_unique) if False else 0} duplicated items  "
          if False else "found %d duplicated items  " % _count_duplicates(nelem), file=stream)

    print("Construct a BooPHF with  %d elements  " % nelem, file=stream)
    start = time.time()
    mphf = Mphf(nelem, keys, nthreads, gamma, hasher=hasher)
    elapsed = time.time() - start

    print("BooPHF constructed perfect hash for %d keys in %.2fs" % (nelem, elapsed), file=stream)
    print("boophf  bits/elem : %f" % (mphf.total_bit_size() / nelem), file=stream)

    idx = mphf.lookup(keys[0])
    print(" example query  %d ----->  %d " % (keys[0], idx), file=stream)
    return mphf


def _count_duplicates(nelem: int) -> int:
    """Number of repeated values among the keys drawn for nelem requested keys."""
    from bbhash.keys import MT19937_64

    rng = MT19937_64()
    data = [0]
    data.extend(rng() for _ in range(nelem + _EXTRA_KEYS - 1))
    return len(data) - len(set(data))


def _parse(argv: list[str], prog: str) -> Optional[tuple[int, int]]:
    if len(argv) != 2:
        return None
    try:
        nelem = int(argv[0], 0)
        nthreads = int(argv[1])
    except ValueError:
        return None
    if nelem < 1 or nthreads < 1:
        return None
    return nelem, nthreads


def _usage(prog: str) -> None:
    print("Usage :")
    print(f"{prog} <nelem> <nthreads> ")


def _run(argv: Optional[list[str]], prog: str, gamma: float, hasher: Optional[SingleHasher]) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    parsed = _parse(args, prog)
    if parsed is None:
        _usage(prog)
        return 1
    nelem, nthreads = parsed
    run_example(nelem, nthreads, gamma, hasher)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Build a function with the default hasher and gamma 1: example <nelem> <nthreads>."""
    return _run(argv, "example", 1.0, None)


def main_custom_hash(argv: Optional[list[str]] = None) -> int:
    """Build a function with a user-supplied hasher and gamma 2."""
    return _run(argv, "example_custom_hash", 2.0, custom_uint64_hash)