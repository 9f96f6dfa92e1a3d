import io
import struct

import pytest

from bbhash.bitvector import BitVector


def _bits(vector):
    return [vector[i] for i in range(len(vector))]


def test_new_vector_is_zero():
    vector = BitVector(200)
    assert len(vector) == 200
    assert sum(_bits(vector)) == 0


def test_set_get_reset():
    vector = BitVector(130)
    vector.set(0)
    vector.set(64)
    vector.set(129)
    assert [i for i in range(130) if vector[i]] == [0, 64, 129]
    vector.reset(64)
    assert [i for i in range(130) if vector[i]] == [0, 129]


def test_out_of_range_raises():
    vector = BitVector(10)
    with pytest.raises(IndexError):
        vector[10]
    with pytest.raises(IndexError):
        vector.set(10)
    with pytest.raises(IndexError):
        vector[-1]


def test_test_and_set_returns_old_value():
    vector = BitVector(100)
    assert vector.test_and_set(37) == 0
    assert vector.test_and_set(37) == 1
    assert vector[37] == 1


def test_get64_reflects_bits():
    vector = BitVector(128)
    vector.set(64)
    vector.set(65)
    assert vector.get64(0) == 0
    assert vector.get64(1) == 3


def test_clear():
    vector = BitVector(300)
    for pos in (1, 100, 299):
        vector.set(pos)
    vector.clear()
    assert sum(_bits(vector)) == 0


def test_clear_range_requires_alignment():
    vector = BitVector(256)
    with pytest.raises(ValueError):
        vector.clear_range(3, 64)
    with pytest.raises(ValueError):
        vector.clear_range(0, 10)


def test_clear_range_clears_only_interval():
    vector = BitVector(256)
    for pos in (10, 70, 130, 200):
        vector.set(pos)
    vector.clear_range(64, 128)
    assert [i for i in range(256) if vector[i]] == [10, 200]


def test_clear_collisions():
    vector = BitVector(128)
    collisions = BitVector(128)
    for pos in (3, 5, 100):
        vector.set(pos)
    collisions.set(5)
    collisions.set(100)
    vector.clear_collisions(0, 128, collisions)
    assert [i for i in range(128) if vector[i]] == [3]
    assert sum(_bits(collisions)) == 0


def test_rank_counts_preceding_bits():
    vector = BitVector(2000)
    for pos in range(0, 2000, 7):
        vector.set(pos)
    total = vector.build_ranks(0)
    assert total == sum(_bits(vector))
    for pos in (0, 1, 63, 64, 511, 512, 513, 1024, 1999):
        assert vector.rank(pos) == sum(vector[i] for i in range(pos))


def test_rank_with_offset():
    vector = BitVector(1000)
    for pos in (2, 600, 900):
        vector.set(pos)
    assert vector.build_ranks(10) == 13
    assert vector.rank(601) == 12
    assert vector.rank(0) == 10


def test_rank_before_build_raises():
    with pytest.raises(ValueError):
        BitVector(64).rank(3)


def test_bit_size_grows_with_ranks():
    vector = BitVector(1000)
    before = vector.bit_size()
    assert before == 1024
    vector.build_ranks()
    assert vector.bit_size() > before


def test_resize_keeps_bits():
    vector = BitVector(10)
    vector.set(9)
    vector.resize(500)
    assert len(vector) == 500
    assert vector[9] == 1
    vector.set(499)
    assert vector[499] == 1


def test_load_truncated_raises():
    vector = BitVector(200)
    buffer = io.BytesIO()
    vector.save(buffer)
    truncated = io.BytesIO(buffer.getvalue()[:20])
    with pytest.raises(EOFError):
        BitVector.load(truncated)