"""
Run-level state shared by every virtual user of one Locust environment.

A :class:`PerfRun` bundles the frozen :class:`LoadProfile` with the
run's :class:`OutcomeRecorder`.  It is attached to the Locust
``Environment`` during the ``init`` event and looked up by users through
:func:`get_run`, so nothing run-scoped lives in a module global.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass, field
from typing import Any

from magiclook_perf.config import get_config
from magiclook_perf.errors import ThresholdViolation
from magiclook_perf.metrics import MetricsSnapshot, OutcomeRecorder
from magiclook_perf.outcomes import Classification
from magiclook_perf.profiles import LoadProfile, get_profile
from magiclook_perf.thresholds import assert_thresholds, format_results

logger = logging.getLogger(__name__)

# Three-state exit codes so CI can tell "thresholds breached" from
# "the target was never reachable".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SETUP_FAILURE = 2

_RUNS: weakref.WeakKeyDictionary[Any, PerfRun] = weakref.WeakKeyDictionary()


@dataclass
class PerfRun:
    """
    Everything a run shares across users.

    Attributes:
        profile: Active load profile (immutable).
        base_url: Target base URL including the context path.
        think_time_scale: Product of the profile and config multipliers.
        recorder: The only mutable shared object; append-only.
        setup_failed: Set when the pre-run probe failed; thresholds are
            not evaluated for such a run.
    """

    profile: LoadProfile
    base_url: str
    think_time_scale: float = 1.0
    recorder: OutcomeRecorder = field(default_factory=OutcomeRecorder)
    setup_failed: bool = False

    def finish(self) -> int:
        """
        Log the run summary, evaluate thresholds, and return the exit code.
        """
        if self.setup_failed:
            return EXIT_SETUP_FAILURE

        snapshot = self.recorder.snapshot()
        logger.info("Outcome summary for profile %s\n%s", self.profile.name, format_summary(snapshot))

        if not self.profile.thresholds:
            return EXIT_PASS
        try:
            results = assert_thresholds(self.profile.thresholds, snapshot)
        except ThresholdViolation as exc:
            logger.error("Threshold check failed\n%s", format_results(exc.failures))
            logger.error("%s", exc)
            return EXIT_THRESHOLD_BREACH

        logger.info("Threshold check passed\n%s", format_results(results))
        return EXIT_PASS


def attach_run(environment: Any, run: PerfRun) -> PerfRun:
    _RUNS[environment] = run
    return run


def get_run(environment: Any) -> PerfRun:
    """
    Return the run attached to *environment*.

    Falls back to a run built from the configured default profile, so a
    user class can be driven directly (``locust -f`` on a scenario module
    or a unit test) without the locustfile's ``init`` hook.
    """
    run = _RUNS.get(environment)
    if run is None:
        settings = get_config()
        profile = get_profile(settings.PROFILE, settings.PROFILES_FILE)
        run = attach_run(
            environment,
            PerfRun(
                profile=profile,
                base_url=settings.BASE_URL,
                think_time_scale=profile.think_time_scale * settings.THINK_TIME_SCALE,
            ),
        )
    return run


def format_summary(snapshot: MetricsSnapshot) -> str:
    """Per-step classification counts as a fixed-width table."""
    columns = [item.value for item in Classification]
    header = f"{'Step':<28}" + "".join(f"{name:>18}" for name in columns) + f"{'skipped':>10}"
    lines = [header, "-" * len(header)]
    for step in sorted(set(snapshot.step_names()) | set(snapshot.skips)):
        counts = "".join(f"{snapshot.count(name, step):>18}" for name in columns)
        lines.append(f"{step:<28}{counts}{snapshot.count('skipped_steps', step):>10}")
    lines.append("-" * len(header))
    lines.append(
        f"iterations={snapshot.iterations} auth_failures={snapshot.auth_failures} "
        f"requests={snapshot.requests()}"
    )
    return "\n".join(lines)
