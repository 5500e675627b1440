"""
Error taxonomy for MagicLook load runs.

Only :class:`SetupFailure` and :class:`ThresholdViolation` change the
overall exit status of a run.  Everything else is iteration-local: it is
counted by the :class:`~magiclook_perf.metrics.OutcomeRecorder` and never
escapes the iteration that produced it.
"""

from __future__ import annotations

from typing import Any


class LoadTestError(Exception):
    """Base class for every error raised by the load-test suite."""


class ProfileError(LoadTestError):
    """A load profile or threshold expression could not be parsed."""


class SetupFailure(LoadTestError):
    """The target application is unreachable before the run starts."""

    def __init__(self, base_url: str, reason: str):
        super().__init__(f"Target {base_url} is not accessible: {reason}")
        self.base_url = base_url
        self.reason = reason


class AuthFailure(LoadTestError):
    """Login did not yield a session cookie for this iteration."""

    def __init__(self, username: str, status: int | None = None):
        detail = f"status {status}" if status is not None else "no response"
        super().__init__(f"Authentication failed for {username} ({detail})")
        self.username = username
        self.status = status


class DependencyMissing(LoadTestError):
    """A step needs a value that an earlier step did not produce."""

    def __init__(self, step_name: str, missing: tuple[str, ...]):
        super().__init__(f"{step_name} skipped, missing: {', '.join(missing)}")
        self.step_name = step_name
        self.missing = missing


class UnexpectedStatus(LoadTestError):
    """A response fell outside every status set the step declares."""

    def __init__(self, step_name: str, status: int):
        super().__init__(f"{step_name} returned unexpected status {status}")
        self.step_name = step_name
        self.status = status


class ThresholdViolation(LoadTestError):
    """At least one threshold predicate failed against the run's metrics."""

    def __init__(self, failures: list[Any]):
        lines = ", ".join(str(failure) for failure in failures)
        super().__init__(f"{len(failures)} threshold(s) breached: {lines}")
        self.failures = failures
