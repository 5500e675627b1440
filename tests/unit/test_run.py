"""
Unit tests for run-level state and exit codes.
"""

import pytest

from magiclook_perf.outcomes import Classification, Outcome
from magiclook_perf.profiles import LoadProfile, Stage
from magiclook_perf.run import (
    EXIT_PASS,
    EXIT_SETUP_FAILURE,
    EXIT_THRESHOLD_BREACH,
    PerfRun,
    attach_run,
    format_summary,
    get_run,
)
from magiclook_perf.thresholds import parse_thresholds


pytestmark = pytest.mark.unit


class FakeEnvironment:
    """Weak-referenceable stand-in for a Locust Environment."""


def _run(thresholds=None):
    profile = LoadProfile(
        name="unit",
        stages=(Stage(1, 1),),
        thresholds=parse_thresholds(thresholds or {}),
    )
    return PerfRun(profile=profile, base_url="http://magiclook.test/magiclook")


def test_run_without_thresholds_passes():
    assert _run().finish() == EXIT_PASS


def test_breached_threshold_exits_one():
    # Arrange
    run = _run({"http_req_failed": ["rate<0.01"]})
    run.recorder.record(Outcome("dashboard", 500, 12.0, Classification.UNEXPECTED_ERROR))

    # Act
    code = run.finish()

    # Assert
    assert code == EXIT_THRESHOLD_BREACH


def test_met_thresholds_exit_zero():
    run = _run({"http_req_duration": ["p(95)<100"], "success{step:create_booking}": ["count>=1"]})
    run.recorder.record(Outcome("create_booking", 302, 12.0, Classification.SUCCESS))

    assert run.finish() == EXIT_PASS


def test_setup_failure_wins_over_thresholds():
    run = _run({"http_req_failed": ["rate<0.01"]})
    run.setup_failed = True

    assert run.finish() == EXIT_SETUP_FAILURE


def test_get_run_returns_attached_run():
    environment = FakeEnvironment()
    run = attach_run(environment, _run())

    assert get_run(environment) is run


def test_get_run_falls_back_to_configured_profile():
    environment = FakeEnvironment()

    run = get_run(environment)

    assert run.profile.name == "smoke"
    assert run.think_time_scale == 0.0
    assert get_run(environment) is run


def test_summary_lists_steps_and_skips():
    run = _run()
    run.recorder.record(Outcome("create_booking", 409, 5.0, Classification.CONFLICT))
    run.recorder.record_skip("cancel_booking")
    run.recorder.record_iteration()

    summary = format_summary(run.recorder.snapshot())

    assert "create_booking" in summary
    assert "cancel_booking" in summary
    assert "iterations=1 auth_failures=0 requests=1" in summary
