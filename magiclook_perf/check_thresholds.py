"""
Validate Locust CSV output against a load profile's thresholds.

The in-process gate (the locustfile's ``quitting`` listener) sees every
classified outcome, but only for the process it runs in.  For
distributed runs, or to re-check an archived run, CI invokes this script
on the ``*_stats.csv`` file Locust writes with ``--csv``.

The CSV only carries what Locust itself measured, so the script answers
the request-level metrics:

- ``http_req_duration``: ``p(N)`` from the percentile columns, plus
  ``avg``/``min``/``max``/``med``
- ``http_reqs``: ``Request Count``
- ``http_req_failed`` / ``errors``: ``Failure Count`` over
  ``Request Count``

Step-scoped keys are matched against the CSV ``Name`` column (the
request label, e.g. ``/login [POST]``).  Thresholds on outcome classes
or iteration counters have no CSV column and are reported as skipped.

Exit codes follow the same three-state convention as the load run:

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: the script itself failed (missing file, unknown profile, etc.)
"""

from __future__ import annotations

import argparse
import csv
import sys
from pathlib import Path
from typing import Any

from magiclook_perf.config import get_config
from magiclook_perf.errors import ThresholdViolation
from magiclook_perf.profiles import get_profile
from magiclook_perf.run import EXIT_PASS, EXIT_SETUP_FAILURE, EXIT_THRESHOLD_BREACH
from magiclook_perf.thresholds import evaluate_thresholds, format_results

EXIT_SCRIPT_ERROR = EXIT_SETUP_FAILURE

_TREND_COLUMNS = {
    "avg": "Average Response Time",
    "min": "Min Response Time",
    "max": "Max Response Time",
    "med": "Median Response Time",
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    settings = get_config()
    parser = argparse.ArgumentParser(
        description="Check Locust stats CSV against a load profile's thresholds."
    )
    parser.add_argument(
        "--stats",
        required=True,
        type=Path,
        help="Path to Locust *_stats.csv file",
    )
    parser.add_argument(
        "--profile",
        default=settings.PROFILE,
        help="Profile whose thresholds to apply",
    )
    parser.add_argument(
        "--profiles-file",
        type=Path,
        default=settings.PROFILES_FILE,
        help="Path to the profiles YAML file",
    )
    return parser.parse_args(argv)


def _parse_float(value: Any, field_name: str) -> float:
    """
    Coerce *value* to ``float``, stripping ``%`` suffixes if present.

    Raises:
        ValueError: If the value is missing, empty, or non-numeric.
    """
    if value is None:
        raise ValueError(f"Missing field: {field_name}")

    text = str(value).strip().replace("%", "")
    if text == "":
        raise ValueError(f"Empty value for field: {field_name}")

    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Non-numeric value for {field_name}: {value}") from exc


def _percentile_columns(pct: float) -> tuple[str, ...]:
    label = f"{pct:g}"
    return (f"{label}%", f"{label}%ile", f"{label}th percentile", f"p{label}")


class CsvMetrics:
    """
    Metric source backed by the rows of a Locust stats CSV.

    Args:
        rows: Every row of the CSV as dictionaries; one of them must be
            the ``Aggregated`` summary row.
    """

    def __init__(self, rows: list[dict[str, str]]):
        self._rows = rows
        self._aggregated = next(
            (
                row
                for row in rows
                if row.get("Name") == "Aggregated" or row.get("Type") == "Aggregated"
            ),
            None,
        )
        if self._aggregated is None:
            raise ValueError("Could not find 'Aggregated' row in stats CSV")

    @classmethod
    def from_file(cls, stats_path: Path) -> CsvMetrics:
        with stats_path.open("r", encoding="utf-8", newline="") as handle:
            return cls(list(csv.DictReader(handle)))

    def _row(self, step: str | None) -> dict[str, str]:
        if step is None:
            return self._aggregated
        for row in self._rows:
            if row.get("Name") == step:
                return row
        raise KeyError(step)

    def trend_value(
        self, metric: str, aggregator: str, pct: float | None = None, step: str | None = None
    ) -> float | None:
        if metric != "http_req_duration":
            raise KeyError(metric)
        row = self._row(step)
        if _parse_float(row.get("Request Count"), "Request Count") <= 0:
            return None
        if aggregator == "p":
            for column in _percentile_columns(pct or 0.0):
                if row.get(column) not in (None, "", "N/A"):
                    return _parse_float(row[column], column)
            raise KeyError(f"p({pct:g})")
        column = _TREND_COLUMNS[aggregator]
        return _parse_float(row.get(column), column)

    def count(self, metric: str, step: str | None = None) -> int:
        row = self._row(step)
        if metric == "http_reqs":
            return int(_parse_float(row.get("Request Count"), "Request Count"))
        if metric in ("http_req_failed", "errors"):
            return int(_parse_float(row.get("Failure Count"), "Failure Count"))
        raise KeyError(metric)

    def rate(self, metric: str, step: str | None = None) -> float | None:
        if metric not in ("http_req_failed", "errors"):
            raise KeyError(metric)
        requests = self.count("http_reqs", step)
        if requests <= 0:
            return None
        return self.count(metric, step) / requests


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load the profile, read the CSV, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        profile = get_profile(args.profile, args.profiles_file)
        metrics = CsvMetrics.from_file(args.stats)
        results = evaluate_thresholds(profile.thresholds, metrics)
    except Exception as exc:  # pragma: no cover - defensive CLI guard
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    failures = [result for result in results if not result.passed]
    print(f"Performance Threshold Check ({profile.name})")
    print(format_results(results))
    print(f"Overall: {'FAIL' if failures else 'PASS'}")
    if failures:
        print(ThresholdViolation(failures), file=sys.stderr)
        return EXIT_THRESHOLD_BREACH
    return EXIT_PASS


if __name__ == "__main__":
    raise SystemExit(main())
