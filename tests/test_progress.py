import io

import pytest

from bbhash.progress import Progress


def test_plain_mode_starts_with_bracket():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(1000, "work")
    assert out.getvalue() == "["


def test_plain_mode_prints_dash_per_step():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(1000, "work")
    bar.inc(5)
    assert out.getvalue() == "[-----"
    assert bar.done == 5


def test_finish_completes_all_steps():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(1000, "work")
    bar.inc(5)
    bar.finish()
    text = out.getvalue()
    assert text.startswith("[")
    assert text.endswith("]\n")
    assert text.count("-") == 1000
    assert bar.todo == 0 and bar.done == 0


def test_set_only_moves_forward():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(1000, "work")
    bar.set(10)
    bar.set(3)
    assert bar.done == 10
    assert out.getvalue().count("-") == 10


def test_threaded_inc_and_finish():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(2000, "work", nthreads=2)
    bar.inc(4, 0)
    bar.inc(2, 1)
    assert out.getvalue().count("-") == 3
    bar.finish_threaded()
    assert out.getvalue().count("-") == 1000
    assert out.getvalue().endswith("]\n")


def test_threaded_inc_bad_tid():
    bar = Progress(stream=io.StringIO())
    bar.init(100, "work", nthreads=2)
    with pytest.raises(IndexError):
        bar.inc(1, 2)


def test_timer_mode_prints_message_and_eta():
    out = io.StringIO()
    bar = Progress(timer_mode=True, stream=out)
    bar.init(1000, "Building BooPHF")
    assert out.getvalue() == ""
    bar.inc(1)
    text = out.getvalue()
    assert text.startswith("\r[Building BooPHF]")
    assert "elapsed:" in text and "remaining:" in text
    bar.finish()
    assert out.getvalue().endswith("\n")
    assert "]\n" not in out.getvalue()[-2:] or out.getvalue()[-2] != "]"


def test_zero_tasks_does_not_loop():
    out = io.StringIO()
    bar = Progress(stream=out)
    bar.init(0, "empty")
    bar.inc(3)
    bar.finish()
    assert out.getvalue() == "[]\n"


def test_init_rejects_no_threads():
    bar = Progress(stream=io.StringIO())
    with pytest.raises(ValueError):
        bar.init(10, "x", nthreads=0)