"""
Threshold expressions and their evaluation.

A profile declares thresholds as a mapping from metric key to one or
more predicate expressions, in the notation load-test tooling commonly
uses::

    http_req_duration: ["p(95)<2000", "p(99)<3000"]
    http_req_failed: ["rate<0.05"]
    "success{step:create_booking}": ["count>=1"]

Expressions are parsed once, when the profile is loaded, so a typo
fails fast instead of surfacing after a ten-minute run.

Key Concepts Demonstrated:
- Small regex grammar instead of ``eval`` for operator expressions
- One evaluator shared by the in-process gate (Locust ``quitting``
  event) and the CSV gate (:mod:`magiclook_perf.check_thresholds`)
- Metrics a source cannot provide are reported as *skipped*, not failed
"""

from __future__ import annotations

import logging
import operator
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from magiclook_perf.errors import ProfileError, ThresholdViolation

logger = logging.getLogger(__name__)

_EXPRESSION_RE = re.compile(
    r"^\s*(?P<agg>p\((?P<pct>\d+(?:\.\d+)?)\)|avg|min|max|med|rate|count)"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*(?P<value>-?\d+(?:\.\d+)?)\s*$"
)
_METRIC_KEY_RE = re.compile(r"^(?P<metric>[a-z_]+)(?:\{step:(?P<step>[^}]+)\})?$")

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

class MetricSource(Protocol):
    """Anything that can answer trend/count/rate queries by metric name."""

    def trend_value(
        self, metric: str, aggregator: str, pct: float | None = None, step: str | None = None
    ) -> float | None: ...

    def count(self, metric: str, step: str | None = None) -> int: ...

    def rate(self, metric: str, step: str | None = None) -> float | None: ...


@dataclass(frozen=True)
class Threshold:
    """One parsed ``aggregator operator value`` predicate on a metric."""

    metric_key: str
    metric: str
    step: str | None
    expression: str
    aggregator: str
    percentile: float | None
    op: str
    limit: float

    def holds(self, actual: float) -> bool:
        return _OPERATORS[self.op](actual, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    """Outcome of evaluating one :class:`Threshold`."""

    threshold: Threshold
    actual: float | None
    passed: bool
    skipped: bool = False

    def __str__(self) -> str:
        actual = "n/a" if self.actual is None else f"{self.actual:.2f}"
        return f"{self.threshold.metric_key} {self.threshold.expression} (actual {actual})"


def parse_metric_key(key: str) -> tuple[str, str | None]:
    """Split ``metric{step:name}`` into ``(metric, step)``."""
    match = _METRIC_KEY_RE.match(key.strip())
    if match is None:
        raise ProfileError(f"Invalid threshold metric key: {key!r}")
    return match.group("metric"), match.group("step")


def parse_threshold(metric_key: str, expression: str) -> Threshold:
    """
    Parse one threshold expression.

    Raises:
        ProfileError: If the key or expression does not match the grammar.
    """
    metric, step = parse_metric_key(metric_key)
    match = _EXPRESSION_RE.match(expression)
    if match is None:
        raise ProfileError(f"Invalid threshold expression for {metric_key}: {expression!r}")

    pct = match.group("pct")
    aggregator = "p" if pct is not None else match.group("agg")
    if pct is not None and not 0 < float(pct) <= 100:
        raise ProfileError(f"Percentile out of range in {expression!r}")

    return Threshold(
        metric_key=metric_key,
        metric=metric,
        step=step,
        expression=expression.strip(),
        aggregator=aggregator,
        percentile=float(pct) if pct is not None else None,
        op=match.group("op"),
        limit=float(match.group("value")),
    )


def parse_thresholds(raw: Mapping[str, Any]) -> tuple[Threshold, ...]:
    """Parse a ``{metric_key: expression | [expressions]}`` mapping."""
    parsed: list[Threshold] = []
    for metric_key, expressions in raw.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        if not isinstance(expressions, Sequence) or not expressions:
            raise ProfileError(f"Thresholds for {metric_key} must be a non-empty list")
        for expression in expressions:
            parsed.append(parse_threshold(str(metric_key), str(expression)))
    return tuple(parsed)


def _actual_value(threshold: Threshold, source: MetricSource) -> float | None:
    if threshold.aggregator == "count":
        return float(source.count(threshold.metric, threshold.step))
    if threshold.aggregator == "rate":
        return source.rate(threshold.metric, threshold.step)

    return source.trend_value(threshold.metric, threshold.aggregator, threshold.percentile, threshold.step)


def evaluate_thresholds(
    thresholds: Sequence[Threshold], source: MetricSource
) -> list[ThresholdResult]:
    """
    Evaluate every threshold against *source*.

    A threshold whose metric the source does not know, or whose trend is
    empty, is returned as skipped rather than failed: an empty trend
    means the step never ran, which a ``count`` threshold should catch.
    """
    results: list[ThresholdResult] = []
    for threshold in thresholds:
        try:
            actual = _actual_value(threshold, source)
        except KeyError:
            logger.warning("Metric %s not available; skipping %s", threshold.metric_key, threshold.expression)
            results.append(ThresholdResult(threshold, None, passed=True, skipped=True))
            continue

        if actual is None:
            results.append(ThresholdResult(threshold, None, passed=True, skipped=True))
            continue
        results.append(ThresholdResult(threshold, actual, passed=threshold.holds(actual)))
    return results


def assert_thresholds(thresholds: Sequence[Threshold], source: MetricSource) -> list[ThresholdResult]:
    """
    Evaluate thresholds and raise if any failed.

    Raises:
        ThresholdViolation: Carrying every failed :class:`ThresholdResult`.
    """
    results = evaluate_thresholds(thresholds, source)
    failures = [result for result in results if not result.passed]
    if failures:
        raise ThresholdViolation(failures)
    return results


def format_results(results: Sequence[ThresholdResult]) -> str:
    """Render results as the fixed-width table printed at the end of a run."""
    lines = [
        f"{'Metric':<44}{'Threshold':>14}{'Actual':>12}{'Status':>9}",
        "-" * 79,
    ]
    for result in results:
        if result.skipped:
            status = "SKIP"
        else:
            status = "PASS" if result.passed else "FAIL"
        actual = "n/a" if result.actual is None else f"{result.actual:.2f}"
        lines.append(
            f"{result.threshold.metric_key:<44}{result.threshold.expression:>14}{actual:>12}{status:>9}"
        )
    return "\n".join(lines)
