"""
Run profiling for the migrator.

`profile_block` measures wall-clock time, peak RSS (sampled by a background
thread through psutil), and process CPU percent around a block of code. The
orchestrator wraps each migration run in it and merges the numbers into the
run payload.

Usage:
    from sqlindexer.utils.profiler import profile_block

    with profile_block("migration") as stats:
        summary = coordinator.run(query)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Generator, Optional

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
    cpu_percent: Optional[float] = field(default=None)


@contextlib.contextmanager
def profile_block(label: str, sample_interval_ms: int = 100) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds between RSS samples.

    Notes
    -----
    RSS is sampled for the whole block so short-lived peaks (a full work
    queue, a large fetch batch) are captured, not just start/end snapshots.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    peak_rss = process.memory_info().rss
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    # cpu_percent needs a priming call.
    process.cpu_percent(interval=None)
    sampler = threading.Thread(target=_sample_memory, name="rss-sampler", daemon=True)
    sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stop_sampling.set()
        sampler.join(timeout=1.0)
        stats.peak_rss_bytes = peak_rss
        stats.cpu_percent = process.cpu_percent(interval=None)


__all__ = ["ProfileStats", "profile_block"]
