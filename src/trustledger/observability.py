"""In-process latency aggregates for consolidation and store operations.

Besides call counts and timings, each operation tracks how often it
had to fall back to a deterministic result, so degraded summaries can
be spotted without them being hard failures.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class OperationStats:
    """Aggregated metrics for one operation name."""

    count: int = 0
    error_count: int = 0
    fallback_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def add(self, duration_ms: float, *, ok: bool, fallback: bool) -> None:
        self.count += 1
        if not ok:
            self.error_count += 1
        if fallback:
            self.fallback_count += 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms
        if self.count == 1:
            self.min_ms = self.max_ms = duration_ms
        else:
            self.min_ms = min(self.min_ms, duration_ms)
            self.max_ms = max(self.max_ms, duration_ms)

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "fallback_count": self.fallback_count,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.count if self.count else 0.0, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class _Recorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._stats: dict[str, OperationStats] = {}

    def record(
        self,
        operation: str,
        duration_ms: float,
        *,
        ok: bool,
        fallback: bool,
    ) -> None:
        duration_ms = max(float(duration_ms), 0.0)
        with self._lock:
            self._stats.setdefault(operation, OperationStats()).add(
                duration_ms, ok=ok, fallback=fallback
            )
        logger.debug(
            "latency operation=%s duration_ms=%.3f ok=%s fallback=%s",
            operation,
            duration_ms,
            ok,
            fallback,
        )

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {name: s.as_dict() for name, s in sorted(self._stats.items())}

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


_RECORDER = _Recorder()


def record_latency(
    *,
    operation: str,
    duration_ms: float,
    ok: bool = True,
    fallback: bool = False,
) -> None:
    """Record one sample for *operation*."""
    _RECORDER.record(operation, duration_ms, ok=ok, fallback=fallback)


class _Sample:
    """Mutable outcome flags for ``timed``."""

    __slots__ = ("ok", "fallback")

    def __init__(self) -> None:
        self.ok = False
        self.fallback = False


@contextmanager
def timed(operation: str) -> Iterator[_Sample]:
    """Time the enclosed block.

    The block counts as failed if it raises; set ``sample.fallback`` to
    flag a degraded result.
    """
    sample = _Sample()
    start = perf_counter()
    try:
        yield sample
        sample.ok = True
    finally:
        record_latency(
            operation=operation,
            duration_ms=(perf_counter() - start) * 1000,
            ok=sample.ok,
            fallback=sample.fallback,
        )


def latency_metrics_snapshot() -> dict[str, dict[str, float | int]]:
    """Return current in-process aggregates."""
    return _RECORDER.snapshot()


def reset_latency_metrics() -> None:
    """Clear all aggregates (test helper)."""
    _RECORDER.reset()
