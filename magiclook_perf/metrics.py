"""
Run-wide aggregation of classified outcomes.

The :class:`OutcomeRecorder` is the only object shared between virtual
users.  It is append-only: greenlets add counts and latency samples
under a lock, and nothing reads the aggregates until the run is over
and :meth:`OutcomeRecorder.snapshot` freezes them into a
:class:`MetricsSnapshot` for threshold evaluation.
"""

from __future__ import annotations

import math
import statistics
import threading
from collections import Counter, defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from magiclook_perf.outcomes import Classification, Outcome

CLASSIFICATION_METRICS = tuple(item.value for item in Classification)


class OutcomeRecorder:
    """Thread-safe counters and latency samples keyed by step name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter[tuple[str, Classification]] = Counter()
        self._latencies: defaultdict[str, list[float]] = defaultdict(list)
        self._skips: Counter[str] = Counter()
        self._iterations = 0
        self._auth_failures = 0

    def record(self, outcome: Outcome) -> None:
        """Count one classified outcome and keep its latency sample."""
        with self._lock:
            self._counts[(outcome.step_name, outcome.classification)] += 1
            self._latencies[outcome.step_name].append(outcome.latency_ms)

    def record_skip(self, step_name: str) -> None:
        with self._lock:
            self._skips[step_name] += 1

    def record_iteration(self) -> None:
        with self._lock:
            self._iterations += 1

    def record_auth_failure(self) -> None:
        with self._lock:
            self._auth_failures += 1

    def snapshot(self) -> MetricsSnapshot:
        """Freeze the current aggregates into an immutable snapshot."""
        with self._lock:
            counts: dict[str, dict[str, int]] = defaultdict(dict)
            for (step_name, classification), count in self._counts.items():
                counts[step_name][classification.value] = count
            return MetricsSnapshot(
                counts=MappingProxyType(
                    {name: MappingProxyType(dict(per)) for name, per in counts.items()}
                ),
                latencies=MappingProxyType(
                    {name: tuple(samples) for name, samples in self._latencies.items()}
                ),
                skips=MappingProxyType(dict(self._skips)),
                iterations=self._iterations,
                auth_failures=self._auth_failures,
            )


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Read-only view of a run's aggregates.

    Metric names understood by :meth:`trend`, :meth:`count` and
    :meth:`rate`:

    - ``http_req_duration`` (trend, milliseconds)
    - ``http_reqs``, ``iterations``, ``auth_failures``, ``skipped_steps``
    - ``success``, ``expected_failure``, ``conflict``, ``unexpected_error``
    - ``http_req_failed`` / ``errors`` (unexpected errors over requests)

    Step-scoped metrics pass ``step``; ``iterations`` and
    ``auth_failures`` are run-wide and ignore it.
    """

    counts: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    latencies: Mapping[str, tuple[float, ...]] = field(default_factory=dict)
    skips: Mapping[str, int] = field(default_factory=dict)
    iterations: int = 0
    auth_failures: int = 0

    def _steps(self, step: str | None) -> list[str]:
        if step is not None:
            return [step]
        return sorted(set(self.counts) | set(self.latencies))

    def step_names(self) -> list[str]:
        return self._steps(None)

    def classification_count(self, classification: str, step: str | None = None) -> int:
        return sum(self.counts.get(name, {}).get(classification, 0) for name in self._steps(step))

    def requests(self, step: str | None = None) -> int:
        return sum(sum(self.counts.get(name, {}).values()) for name in self._steps(step))

    def trend(self, metric: str, step: str | None = None) -> list[float]:
        """Return latency samples for ``http_req_duration``."""
        if metric != "http_req_duration":
            raise KeyError(f"{metric} is not a trend metric")
        samples: list[float] = []
        for name in self._steps(step):
            samples.extend(self.latencies.get(name, ()))
        return samples

    def trend_value(
        self, metric: str, aggregator: str, pct: float | None = None, step: str | None = None
    ) -> float | None:
        """Aggregate a trend; ``None`` when there are no samples."""
        samples = self.trend(metric, step)
        if not samples:
            return None
        return aggregate(samples, aggregator, pct)

    def count(self, metric: str, step: str | None = None) -> int:
        if metric in CLASSIFICATION_METRICS:
            return self.classification_count(metric, step)
        if metric in ("http_req_failed", "errors"):
            return self.classification_count(Classification.UNEXPECTED_ERROR.value, step)
        if metric == "http_reqs":
            return self.requests(step)
        if metric == "skipped_steps":
            if step is not None:
                return self.skips.get(step, 0)
            return sum(self.skips.values())
        if metric == "iterations":
            return self.iterations
        if metric == "auth_failures":
            return self.auth_failures
        raise KeyError(f"Unknown counter metric: {metric}")

    def rate(self, metric: str, step: str | None = None) -> float | None:
        """
        Return ``count / denominator`` or ``None`` when nothing happened.

        Request-level metrics divide by ``http_reqs``; ``auth_failures``
        divides by ``iterations``.
        """
        if metric == "auth_failures":
            denominator = self.iterations
        elif metric == "skipped_steps":
            denominator = self.requests(step) + self.count("skipped_steps", step)
        else:
            denominator = self.requests(step)
        if denominator == 0:
            return None
        return self.count(metric, step) / denominator


def aggregate(samples: list[float], aggregator: str, pct: float | None = None) -> float:
    """Apply a threshold aggregator (``p``, ``avg``, ``min``, ``max``, ``med``)."""
    if aggregator == "p":
        return percentile(samples, pct or 0.0)
    if aggregator == "avg":
        return statistics.fmean(samples)
    if aggregator == "min":
        return min(samples)
    if aggregator == "max":
        return max(samples)
    if aggregator == "med":
        return statistics.median(samples)
    raise ValueError(f"Unknown trend aggregator: {aggregator}")


def percentile(samples: list[float], pct: float) -> float:
    """Nearest-rank percentile, matching how load tools report ``p(95)``."""
    if not samples:
        raise ValueError("percentile of empty sample set")
    ordered = sorted(samples)
    rank = max(1, math.ceil(pct / 100.0 * len(ordered)))
    return ordered[min(rank, len(ordered)) - 1]
