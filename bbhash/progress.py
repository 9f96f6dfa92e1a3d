"""Text progress bar that several worker threads can share."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

_SUBDIV = 1000


class Progress:
    """Progress bar that prints a dash per 1/1000 of the work, or an ETA line in timer mode."""

    def __init__(self, timer_mode: bool = False, stream: TextIO | None = None) -> None:
        self.timer_mode = timer_mode
        self._stream = stream
        self.message = ""
        self.todo = 0
        self.done = 0
        self.partial = 0.0
        self.steps = 0.0
        self._nthreads = 1
        self._partial_threaded: list[float] = [0.0]
        self._done_threaded: list[int] = [0]
        self._start = time.time()
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def init(self, ntasks: int, message: str, nthreads: int = 1) -> None:
        """Start tracking ntasks units of work split over nthreads threads."""
        if nthreads < 1:
            raise ValueError("nthreads must be at least 1")
        self._nthreads = nthreads
        self.message = message
        self._start = time.time()
        self.todo = int(ntasks)
        self.done = 0
        self.partial = 0.0
        self._partial_threaded = [0.0] * nthreads
        self._done_threaded = [0] * nthreads
        self.steps = self.todo / _SUBDIV
        if not self.timer_mode:
            self._write("[")

    def _timer_line(self, total_done: int) -> str:
        elapsed = time.time() - self._start
        if total_done > self.todo or total_done == 0 or elapsed <= 0:
            remaining = 0.0
        else:
            speed = total_done / elapsed
            remaining = (self.todo - total_done) / speed
        min_e = int(elapsed / 60)
        elapsed -= min_e * 60
        min_r = int(remaining / 60)
        remaining -= min_r * 60
        percent = 100 * total_done / self.todo if self.todo else 100.0
        return (
            "\r[%s]  %-5.3g%%   elapsed: %3i min %-2.0f sec   remaining: %3i min %-2.0f sec"
            % (self.message, percent, min_e, elapsed, min_r, remaining)
        )

    def _tick(self, total_done: int) -> None:
        if self.timer_mode:
            self._write(self._timer_line(total_done))
        else:
            self._write("-")

    def inc(self, ntasks_done: int, tid: int | None = None) -> None:
        """Record finished work, for the whole bar or for thread tid."""
        if tid is None:
            with self._lock:
                self.done += ntasks_done
                self.partial += ntasks_done
                while self.steps > 0 and self.partial >= self.steps:
                    self._tick(self.done)
                    self.partial -= self.steps
            return
        if not 0 <= tid < self._nthreads:
            raise IndexError(f"thread id {tid} out of range for {self._nthreads} threads")
        with self._lock:
            self._partial_threaded[tid] += ntasks_done
            self._done_threaded[tid] += ntasks_done
            while self.steps > 0 and self._partial_threaded[tid] >= self.steps:
                self._tick(sum(self._done_threaded))
                self._partial_threaded[tid] -= self.steps

    def set(self, ntasks_done: int) -> None:
        """Advance the bar to ntasks_done if that is further than it is."""
        if ntasks_done > self.done:
            self.inc(ntasks_done - self.done)

    def finish(self) -> None:
        """Complete the bar and end its line."""
        self.set(self.todo)
        self._write("\n" if self.timer_mode else "]\n")
        self.todo = 0
        self.done = 0
        self.partial = 0.0

    def finish_threaded(self) -> None:
        """Merge per-thread counts and complete the bar; call from one thread only."""
        self.done = sum(self._done_threaded)
        self.partial += sum(self._partial_threaded)
        self.finish()