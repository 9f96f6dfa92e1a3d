import pytest

from bbhash.fileio import BinaryFile, read_uint64s, write_uint64s


def test_round_trip(tmp_path):
    path = tmp_path / "keys"
    values = [0, 1, 2**64 - 1, 0xAAAAAAAA55555555]
    assert write_uint64s(path, values) == len(values)
    assert read_uint64s(path) == values


def test_wire_format_is_little_endian(tmp_path):
    path = tmp_path / "one"
    write_uint64s(path, [1])
    assert path.read_bytes() == b"\x01" + b"\x00" * 7


def test_empty_file(tmp_path):
    path = tmp_path / "empty"
    assert write_uint64s(path, []) == 0
    assert read_uint64s(path) == []


def test_trailing_partial_item_ignored(tmp_path):
    path = tmp_path / "partial"
    write_uint64s(path, [7, 9])
    with open(path, "ab") as f:
        f.write(b"\x05\x06\x07")
    assert read_uint64s(path) == [7, 9]


def test_crosses_buffer_boundary(tmp_path):
    path = tmp_path / "big"
    values = list(range(25003))
    write_uint64s(path, values)
    assert read_uint64s(path) == values


def test_iterating_twice_restarts(tmp_path):
    path = tmp_path / "twice"
    write_uint64s(path, [3, 4, 5])
    with BinaryFile(path) as source:
        assert list(source) == [3, 4, 5]
        assert list(source) == [3, 4, 5]


def test_interleaved_iterators_are_independent(tmp_path):
    path = tmp_path / "interleave"
    values = list(range(20005))
    write_uint64s(path, values)
    with BinaryFile(path) as source:
        a = iter(source)
        b = iter(source)
        merged = [(x, y) for x, y in zip(a, b)]
    assert merged == [(v, v) for v in values]


def test_missing_file_raises(tmp_path):
    with pytest.raises(ValueError, match="Error opening"):
        BinaryFile(tmp_path / "missing")


def test_value_out_of_range(tmp_path):
    with pytest.raises(ValueError):
        write_uint64s(tmp_path / "bad", [2**64])
    with pytest.raises(ValueError):
        write_uint64s(tmp_path / "neg", [-1])


def test_accepts_generator(tmp_path):
    path = tmp_path / "gen"
    assert write_uint64s(path, (i * i for i in range(10))) == 10
    assert read_uint64s(path) == [i * i for i in range(10)]