"""Key generators: a 64-bit Mersenne Twister, random unique keys and evenly spaced keys."""

from __future__ import annotations

from collections.abc import Iterator

from bbhash.hashing import MASK64

DEFAULT_SEED = 5489

_N = 312
_M = 156
_MATRIX_A = 0xB5026F5AA96619E9
_UPPER_MASK = MASK64 ^ ((1 << 31) - 1)
_LOWER_MASK = (1 << 31) - 1
_INIT_MULT = 6364136223846793005


class MT19937_64:
    """64-bit Mersenne Twister producing the standard mt19937_64 sequence."""

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.seed(seed)

    def seed(self, seed: int = DEFAULT_SEED) -> None:
        """Reset the generator state from seed."""
        state = [seed & MASK64]
        for i in range(1, _N):
            prev = state[-1]
            state.append((_INIT_MULT * (prev ^ (prev >> 62)) + i) & MASK64)
        self._state = state
        self._index = _N

    def _twist(self) -> None:
        mt = self._state
        for i in range(_N):
            x = (mt[i] & _UPPER_MASK) | (mt[(i + 1) % _N] & _LOWER_MASK)
            x_a = x >> 1
            if x & 1:
                x_a ^= _MATRIX_A
            mt[i] = mt[(i + _M) % _N] ^ x_a
        self._index = 0

    def __call__(self) -> int:
        """Return the next 64-bit output."""
        if self._index >= _N:
            self._twist()
        y = self._state[self._index]
        self._index += 1
        y ^= (y >> 29) & 0x5555555555555555
        y ^= (y << 17) & 0x71D67FFFEDA60000
        y ^= (y << 37) & 0xFFF7EEE000000000
        y ^= y >> 43
        return y & MASK64

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self()


def random_unique_keys(nelem: int, extra: int = 100) -> list[int]:
    """Return nelem distinct sorted keys: zero plus outputs of a default-seeded generator.

    nelem + extra - 1 random values are drawn so that duplicates can be dropped.
    """
    if nelem < 0 or extra < 0:
        raise ValueError("nelem and extra must be non-negative")
    total = nelem + extra
    if total == 0:
        return []
    rng = MT19937_64()
    data = [0]
    data.extend(rng() for _ in range(total - 1))
    unique = sorted(set(data))
    if len(unique) < nelem:
        raise ValueError(f"only {len(unique)} distinct keys generated, {nelem} requested")
    return unique[:nelem]


def evenly_spaced_keys(nb_elem: int, stop: int) -> Iterator[int]:
    """Yield keys from 0 spaced by (2**64 - 1) // nb_elem, wrapping modulo 2**64.

    The sequence ends after stop keys; at least one key is always produced.
    """
    if nb_elem <= 0:
        raise ValueError("nb_elem must be positive")
    step = MASK64 // nb_elem
    current = 0
    produced = 0
    while True:
        yield current
        current = (current + step) & MASK64
        produced += 1
        if produced >= stop:
            return


def koren_xor(x: int) -> int:
    """Cheap xorshift mixing of a 64-bit value, used to spread keys over buckets."""
    x &= MASK64
    x ^= (x << 21) & MASK64
    x ^= x >> 35
    x ^= (x << 4) & MASK64
    return x