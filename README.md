# bbhash

A minimal perfect hash function (MPHF) for sets of 64-bit integer keys.
Building it is fast and uses little memory. In exchange it takes a few more bits
per key than some other schemes. The structure is a cascade of "collision-free"
bit arrays. A small exact table holds the keys that are still left after the
last level.

`Mphf.lookup` maps each of `n` distinct keys to a distinct index in `[0, n)`.
A key that was not in the set may get an arbitrary index. It gets `None` when it
reaches the final table and is not found there. `lookup` also returns `None`
when the function has not been built.

## Installation

```
pip install .
```

To run the test suite, install with the `test` extra:

```
pip install .[test]
pytest
```

## Library use

```python
from bbhash.mphf import Mphf
from bbhash.keys import random_unique_keys

keys = random_unique_keys(100_000, 100)
mphf = Mphf(len(keys), keys, num_thread=1, gamma=2.0, write_each=False, progress=False)

index = mphf.lookup(keys[0])      # in range(len(keys))
print(mphf.nb_keys(), mphf.total_bit_size() / len(keys), "bits/key")
```

`total_bit_size()` returns an estimate of the memory footprint in bits. It also
prints a breakdown to standard output.

The parameters of `Mphf` are:

- `n`: the number of keys.
- `keys`: an iterable of distinct unsigned 64-bit integers. A one-shot iterator
  is first copied into a list, because the keys are read once per level.
- `num_thread` (default 1): the number of worker threads.
- `gamma` (default 2.0): the size factor of the bit arrays. `gamma=1` gives the
  fewest bits per key. Larger values make construction and lookup faster.
- `write_each` (default `True`): write the keys that reach each level to files
  in a temporary directory, created under `workdir` or the system default, so
  that later passes read fewer keys. The directory is removed afterwards.
- `progress` (default `True`): print a progress bar to standard error and one
  summary line to standard output.
- `perc_elem_loaded` (default 0.03): the fraction of keys that may be held in
  memory for the fast build mode. Set it to `0` to turn fast mode off. Fast mode
  is never used together with `write_each`.
- `hasher` (default `None`): a callable `hasher(key, seed)` that returns a 64-bit
  hash. `None` selects the built-in hash.
- `workdir` (default `None`): where the temporary directory for `write_each` is
  created.

`ValueError` is raised for a negative `n`, a `num_thread` below 1 or a `gamma`
that is not positive.

### Saving and loading

```python
with open("saved_mphf", "wb") as f:
    mphf.save(f)

with open("saved_mphf", "rb") as f:
    again = Mphf.load(f)
```

`load` takes the same `hasher` that the function was built with, if it was built
with a custom one. A function that has not been built cannot be saved.

### Custom hash

Any callable `(key, seed) -> int` can be used as the hash. It is called with two
fixed seeds to get two starting hashes, and xorshift128* derives the rest from
them. `bbhash.examples.custom_uint64_hash`, a Murmur3 finaliser xored with the
seed, is one such function:

```python
from bbhash.examples import custom_uint64_hash

mphf = Mphf(len(keys), keys, gamma=2.0, write_each=False, progress=False,
            hasher=custom_uint64_hash)
```

### Other building blocks

- `bbhash.bitvector.BitVector`: a bit array with `set`, `reset`, `test_and_set`,
  `build_ranks`, `rank`, `save` and `load`.
- `bbhash.hashing`: `hash64`, `fastrange64`, `popcount_64`, `HashFunctors`,
  `SingleHashFunctor` and `XorshiftHashFunctors`.
- `bbhash.fileio`: `BinaryFile`, `read_uint64s` and `write_uint64s`, for files of
  little-endian unsigned 64-bit integers.
- `bbhash.keys`: the 64-bit Mersenne Twister `MT19937_64`,
  `random_unique_keys`, `evenly_spaced_keys` and `koren_xor`.
- `bbhash.progress.Progress`: the text progress bar used during construction.
- `bbhash.bench`: `StatsAccumulator`, `BucketedMphf`,
  `check_mphf_correctness` and `bench_mphf_lookup`.

## Commands

These commands build an MPHF over random keys and run one example query. The
first uses the built-in hash with gamma 1. The second uses
`custom_uint64_hash` with gamma 2.

```
bbhash-example <nelem> <nthreads>
bbhash-example-custom-hash <nelem> <nthreads>
```

This command benchmarks and checks a function:

```
bbhash-bench <nelem> <nthreads> <gamma> [options]
```

By default it writes evenly spaced keys to `keyfile` in the current directory
and builds from that file. It also writes each level to disk.

Options:

- `-check`: check that every key maps to a distinct index in `[0, nelem)`
- `-bench`: time lookups; when reading from disk, a sample of at most 10 million
  keys is written to `benchfile` first
- `-save`: save the function to `saved_mphf`
- `-load`: load the function from `saved_mphf` instead of building it
- `-inram`: use random keys held in memory instead of a key file
- `-nodisk`: do not write each intermediate level to disk
- `-buckets`: split the keys over 96 × 96 small functions; `nthreads` must
  divide 96
- `-outquery`: look up 100 million random keys that are outside the set and
  report how many still get an index
- `-onthefly`: generate the keys on the fly instead of storing them

For example:

```
bbhash-bench 10000 1 2 -check
```

## Limitations

Keys must be unsigned 64-bit integers. There is no support for string or other
key types. Construction and lookup run in pure Python and are much slower than
native code. The timings from `bbhash-bench` reflect that.