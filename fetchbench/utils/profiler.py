"""
Profiling utilities for fetchbench.

`profile_block` measures a block of code:
- wall-clock time (perf_counter)
- peak RSS, sampled by a background thread (psutil)
- peak Python allocations (tracemalloc)
- CPU percent over the block (psutil)

Client memory matters here because the strategies trade round-trips against
how many rows sit in Python at once.

    with profile_block("chunked_iteration") as stats:
        executor.run(strategy, request)
    print(stats.duration_seconds, stats.peak_rss_bytes, stats.peak_traced_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
import tracemalloc
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    peak_traced_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


class _RssSampler(threading.Thread):
    """Polls the process RSS until stopped, remembering the maximum."""

    def __init__(self, process: psutil.Process, interval_s: float) -> None:
        super().__init__(daemon=True)
        self._process = process
        self._interval_s = interval_s
        self._stop_event = threading.Event()
        self.peak = process.memory_info().rss

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.peak = max(self.peak, self._process.memory_info().rss)
            except psutil.Error:
                break
            self._stop_event.wait(timeout=self._interval_s)

    def stop(self) -> int:
        self._stop_event.set()
        self.join(timeout=1.0)
        return self.peak


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, enable_tracemalloc: bool = True
) -> Generator[ProfileStats, None, None]:
    """
    Context manager that fills a ProfileStats for the enclosed block.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds for RSS sampling. Lower = more accurate but higher overhead.
    enable_tracemalloc : bool
        Whether to trace Python-level allocations. An already running trace is
        left running on exit.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()

    started_tracing = False
    if enable_tracemalloc and not tracemalloc.is_tracing():
        tracemalloc.start()
        started_tracing = True
    if enable_tracemalloc:
        tracemalloc.reset_peak()

    process.cpu_percent(interval=None)
    sampler = _RssSampler(process, sample_interval_ms / 1000.0)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.peak_rss_bytes = sampler.stop() or None
        stats.cpu_percent = process.cpu_percent(interval=None)

        if enable_tracemalloc and tracemalloc.is_tracing():
            _, stats.peak_traced_bytes = tracemalloc.get_traced_memory()
            if started_tracing:
                tracemalloc.stop()


__all__ = ["ProfileStats", "profile_block"]
