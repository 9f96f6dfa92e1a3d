"""Hash functions used to build the cascade of collision-free bit arrays."""

from __future__ import annotations

from collections.abc import Callable, MutableSequence

MASK64 = (1 << 64) - 1
NB_HASHES = 10

SEED_H0 = 0xAAAAAAAA55555555
SEED_H1 = 0x33333333CCCCCCCC

_RBASE = (
    0xAAAAAAAA55555555,
    0x33333333CCCCCCCC,
    0x6666666699999999,
    0xB5B5B5B54B4B4B4B,
    0xAA55AA5555335533,
    0x33CC33CCCC66CC66,
    0x6699669999B599B5,
    0xB54BB54B4BAA4BAA,
    0xAA33AA3355CC55CC,
    0x33663366CC99CC99,
)

SingleHasher = Callable[[int, int], int]


def hash64(key: int, seed: int) -> int:
    """Hash a 64-bit integer key with a 64-bit seed."""
    key &= MASK64
    h = seed & MASK64
    h ^= ((h << 7) ^ (key * (h >> 3)) ^ ~((h << 11) + (key ^ (h >> 5)))) & MASK64
    h &= MASK64
    h = (~h + (h << 21)) & MASK64
    h ^= h >> 24
    h = (h + (h << 3) + (h << 8)) & MASK64
    h ^= h >> 14
    h = (h + (h << 2) + (h << 4)) & MASK64
    h ^= h >> 28
    h = (h + (h << 31)) & MASK64
    return h


def fastrange64(word: int, p: int) -> int:
    """Map a 64-bit word uniformly onto the range [0, p)."""
    return ((word & MASK64) * (p & MASK64)) >> 64


def popcount_64(x: int) -> int:
    """Number of set bits in the low 64 bits of x."""
    return (x & MASK64).bit_count()


class HashFunctors:
    """A family of ten seeded hash functions over 64-bit keys."""

    def __init__(self, user_seed: int = 0) -> None:
        self._user_seed = user_seed & MASK64
        seeds = list(_RBASE)
        for i in range(NB_HASHES):
            seeds[i] = (seeds[i] * seeds[(i + 3) % NB_HASHES] + self._user_seed) & MASK64
        self._seeds = tuple(seeds)

    def __call__(self, key: int) -> tuple[int, ...]:
        """Return all ten hashes of key."""
        return tuple(hash64(key, seed) for seed in self._seeds)

    def hash_at(self, key: int, idx: int) -> int:
        """Return the hash of key under the idx-th function."""
        return hash64(key, self._seeds[idx])

    def hash_with_seed(self, key: int, seed: int) -> int:
        """Return the hash of key under an explicit seed."""
        return hash64(key, seed)


class SingleHashFunctor:
    """A single seeded hash function; the default hasher for integer keys."""

    def __init__(self) -> None:
        self._functors = HashFunctors()

    def __call__(self, key: int, seed: int = SEED_H0) -> int:
        return self._functors.hash_with_seed(key, seed)


class XorshiftHashFunctors:
    """Derives a sequence of hashes from two seeded hashes via xorshift128*."""

    def __init__(self, single_hasher: SingleHasher | None = None) -> None:
        self._single_hasher = single_hasher if single_hasher is not None else SingleHashFunctor()

    def h0(self, state: MutableSequence[int], key: int) -> int:
        """First hash of key; stored as state[0]."""
        state[0] = self._single_hasher(key, SEED_H0) & MASK64
        return state[0]

    def h1(self, state: MutableSequence[int], key: int) -> int:
        """Second hash of key; stored as state[1]."""
        state[1] = self._single_hasher(key, SEED_H1) & MASK64
        return state[1]

    def next(self, state: MutableSequence[int]) -> int:
        """Advance the xorshift state and return the next hash."""
        s1 = state[0]
        s0 = state[1]
        state[0] = s0
        s1 ^= (s1 << 23) & MASK64
        state[1] = s1 ^ s0 ^ (s1 >> 17) ^ (s0 >> 26)
        return (state[1] + s0) & MASK64

    def __call__(self, key: int) -> tuple[int, ...]:
        """Return the first ten hashes of key."""
        state = [0, 0]
        hashes = [self.h0(state, key), self.h1(state, key)]
        hashes.extend(self.next(state) for _ in range(NB_HASHES - 2))
        return tuple(hashes)