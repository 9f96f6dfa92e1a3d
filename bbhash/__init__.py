"""Minimal perfect hash functions over 64-bit keys, built from cascades of bit arrays."""

__version__ = "0.1.0"
__all__ = ["bench", "bitvector", "examples", "fileio", "hashing", "keys", "mphf", "progress"]