import io
import math
import statistics

import pytest

from bbhash.bench import (
    BucketedMphf,
    StatsAccumulator,
    bench_mphf_lookup,
    check_mphf_correctness,
    main,
    parse_args,
)
from bbhash.fileio import read_uint64s, write_uint64s
from bbhash.keys import evenly_spaced_keys
from bbhash.mphf import Mphf


class _TableLookup:
    def __init__(self, table):
        self.table = table

    def lookup(self, key):
        return self.table.get(key)


def test_stats_matches_statistics_module():
    samples = [3.5, 1.25, 8.0, 4.75, 2.0]
    stats = StatsAccumulator()
    for x in samples:
        stats.add(x)
    assert stats.mean() == pytest.approx(statistics.fmean(samples))
    assert stats.variance() == pytest.approx(statistics.variance(samples))
    expected = math.sqrt(statistics.variance(samples)) / statistics.fmean(samples) * 100
    assert stats.relative_stddev() == pytest.approx(expected)


def test_stats_single_sample_variance_is_nan():
    stats = StatsAccumulator()
    stats.add(5.0)
    assert stats.mean() == 5.0
    assert math.isnan(stats.variance())
    assert math.isnan(stats.relative_stddev())


def test_check_detects_collisions_and_range_problems():
    fake = _TableLookup({10: 0, 11: 0, 12: 5, 13: None})
    out = io.StringIO()
    collisions, problems = check_mphf_correctness(fake, [10, 11, 12, 13], 4, out)
    assert collisions == 1
    assert problems == 2
    assert "!!! problem" in out.getvalue()


def test_check_accepts_permutation():
    fake = _TableLookup({7: 2, 8: 0, 9: 1})
    out = io.StringIO()
    assert check_mphf_correctness(fake, [7, 8, 9], 3, out) == (0, 0)
    assert "boophf working correctly" in out.getvalue()


def test_check_on_built_function():
    keys = list(evenly_spaced_keys(150, 150))
    mphf = Mphf(len(keys), keys, 1, 2.0, False, False)
    out = io.StringIO()
    assert check_mphf_correctness(mphf, keys, len(keys), out) == (0, 0)


def test_bench_fingerprint_sums_every_run():
    table = {1: 3, 2: 4, 3: 9}
    out = io.StringIO()
    stats, fingerprint = bench_mphf_lookup(_TableLookup(table), [1, 2, 3], out)
    assert fingerprint == 10 * sum(table.values())
    assert "sample size 3" in out.getvalue()
    assert stats.mean() == 0.0


def test_parse_args_flags_and_atoi_gamma():
    opts = parse_args(["0x10", "2", "1.5", "-check", "-nodisk", "-inram", "-unknown"])
    assert opts.nelem == 16
    assert opts.nthreads == 2
    assert opts.gamma == 1
    assert opts.check and not opts.write_each and not opts.from_disk
    assert not opts.bench and not opts.buckets


def test_parse_args_errors():
    with pytest.raises(ValueError):
        parse_args(["100", "1"])
    with pytest.raises(ValueError, match="gamma"):
        parse_args(["100", "1", "0"])


def test_main_usage_returns_failure(capsys):
    assert main(["100"]) == 1
    assert "Usage" in capsys.readouterr().out


def test_bucketed_is_minimal_perfect(tmp_path):
    keys = list(evenly_spaced_keys(300, 300))
    path = tmp_path / "keys"
    write_uint64s(path, keys)
    bucketed = BucketedMphf(path, 2, 2.0, False, tmp_path)
    assert len(bucketed) == 300
    assert sorted(bucketed.lookup(k) for k in keys) == list(range(300))


def test_bucketed_rejects_bad_thread_count(tmp_path):
    path = tmp_path / "keys"
    write_uint64s(path, [1, 2, 3])
    with pytest.raises(ValueError):
        BucketedMphf(path, 5, 2.0, False)


def test_main_build_check_and_bench(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["200", "1", "2", "-check", "-bench"]) == 0
    out = capsys.readouterr().out
    assert "boophf working correctly" in out
    assert "sample size 200" in out
    assert read_uint64s(tmp_path / "keyfile") == list(evenly_spaced_keys(200, 200))


def test_main_save_then_load(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["120", "1", "2", "-nodisk", "-save"]) == 0
    assert (tmp_path / "saved_mphf").stat().st_size > 0
    capsys.readouterr()
    assert main(["120", "1", "2", "-load", "-check"]) == 0
    out = capsys.readouterr().out
    assert "re-loaded perfect hash for 120 keys" in out
    assert "boophf working correctly" in out


def test_main_in_ram_on_the_fly(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["100", "1", "1", "-inram", "-nodisk", "-check"]) == 0
    assert "boophf working correctly" in capsys.readouterr().out
    assert main(["100", "1", "1", "-onthefly", "-nodisk", "-check"]) == 0
    assert "boophf working correctly" in capsys.readouterr().out


def test_main_buckets(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert main(["250", "1", "2", "-buckets", "-nodisk", "-check"]) == 0
    out = capsys.readouterr().out
    assert "there is 0 problems" in out
    assert "there is 0 coll" in out