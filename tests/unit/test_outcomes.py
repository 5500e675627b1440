"""
Unit tests for outcome classification.
"""

import pytest

from magiclook_perf.outcomes import Classification, classify


pytestmark = pytest.mark.unit


def test_expected_status_is_success():
    assert classify(200, "", expected={200}) is Classification.SUCCESS


def test_expected_status_with_rejected_body_is_unexpected_error():
    # Arrange
    def body_check(body):
        return body.startswith("[")

    # Act
    result = classify(200, "<html>", expected={200}, body_check=body_check)

    # Assert
    assert result is Classification.UNEXPECTED_ERROR


@pytest.mark.parametrize("status", [400, 409])
def test_booking_rejection_is_conflict(status):
    result = classify(status, "", expected={200, 302}, conflict={400, 409})

    assert result is Classification.CONFLICT
    assert not result.is_failure


def test_expected_failure_status_is_not_an_error():
    result = classify(400, "", expected={200}, expected_failure={400})

    assert result is Classification.EXPECTED_FAILURE
    assert not result.is_failure


@pytest.mark.parametrize("status", [0, 404, 500, 503])
def test_any_other_status_is_unexpected_error(status):
    result = classify(status, "", expected={200}, conflict={409}, expected_failure={400})

    assert result is Classification.UNEXPECTED_ERROR
    assert result.is_failure


def test_expected_wins_over_conflict_when_sets_overlap():
    """A status listed as both expected and conflict counts as success."""
    assert classify(400, "", expected={400}, conflict={400}) is Classification.SUCCESS
