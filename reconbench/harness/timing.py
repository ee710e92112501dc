from __future__ import annotations

import time


class MonotonicClock:
    """Unix-microsecond timestamps that never run backwards.

    The wall clock is sampled once; later readings add the monotonic
    ``perf_counter`` delta, so samples taken by the same thread are
    non-decreasing even if the system clock is adjusted mid-run.
    """

    def __init__(self) -> None:
        self._wall_anchor_us = time.time_ns() // 1_000
        self._mono_anchor_ns = time.perf_counter_ns()

    def now_us(self) -> int:
        return self._wall_anchor_us + (time.perf_counter_ns() - self._mono_anchor_ns) // 1_000

    @staticmethod
    def elapsed_us(started_ns: int) -> int:
        return (time.perf_counter_ns() - started_ns) // 1_000
