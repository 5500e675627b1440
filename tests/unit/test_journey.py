"""
Unit tests for the journey executor.

The executor is driven through the ``FakeClient`` double, so these tests
check exactly what would reach Locust: which requests were sent, with
which headers, and whether each response was marked a success or a
failure.
"""

from dataclasses import replace

import pytest

from magiclook_perf.journey import IterationState, JourneyExecutor, JourneyStep, VirtualUserContext
from magiclook_perf.outcomes import Classification
from magiclook_perf.steps import (
    CANCEL_BOOKING,
    CATEGORIES_API,
    CHECK_AVAILABILITY,
    CREATE_BOOKING,
    DASHBOARD,
    MY_BOOKINGS,
)


pytestmark = pytest.mark.unit


def test_step_label_and_required_values():
    assert CANCEL_BOOKING.label == "/my-bookings/[booking_id]/cancel [POST]"
    assert CANCEL_BOOKING.required_values() == ("booking_id",)
    assert CREATE_BOOKING.required_values() == ("item_id", "size", "start", "end")


def test_step_normalises_method_and_status_sets():
    step = JourneyStep(name="x", method="get", path="/", expected=[200, 204])

    assert step.method == "GET"
    assert step.expected == frozenset({200, 204})


def test_authenticated_step_without_session_aborts(executor, recorder, fake_client, credentials):
    # Arrange
    context = VirtualUserContext(credentials=credentials)

    # Act
    result = executor.run(context, (CATEGORIES_API, DASHBOARD, MY_BOOKINGS))

    # Assert
    assert fake_client.urls() == ["/api/categories"]
    assert result.aborted
    assert result.skipped == ["dashboard", "my_bookings"]
    assert context.state is IterationState.AUTH_FAILED
    assert recorder.snapshot().auth_failures == 1


def test_session_and_correlation_headers_are_sent(executor, fake_client, authenticated_context):
    executor.run(authenticated_context, (DASHBOARD,))

    headers = fake_client.calls[0].kwargs["headers"]
    assert headers["Cookie"] == f"JSESSIONID={authenticated_context.session_token}"
    assert headers["X-Correlation-ID"] == authenticated_context.correlation_id


def test_missing_value_skips_step_and_continues(executor, recorder, fake_client, authenticated_context):
    # Arrange -- the bookings page lists nothing, so no booking_id is found
    fake_client.routes[("GET", "/my-bookings")] = (200, "<p>No bookings</p>")

    # Act
    result = executor.run(authenticated_context, (MY_BOOKINGS, CANCEL_BOOKING, DASHBOARD))

    # Assert
    assert fake_client.urls() == ["/my-bookings", "/dashboard"]
    assert result.skipped == ["cancel_booking"]
    assert not result.aborted
    assert recorder.snapshot().count("skipped_steps", "cancel_booking") == 1


def test_extracted_value_feeds_later_path(executor, fake_client, authenticated_context):
    fake_client.routes[("GET", "/my-bookings")] = (200, '<a href="/magiclook/my-bookings/42/cancel-info">')

    executor.run(authenticated_context, (MY_BOOKINGS, CANCEL_BOOKING))

    assert fake_client.urls() == ["/my-bookings", "/my-bookings/42/cancel"]
    assert authenticated_context.values["booking_id"] == "42"


def test_booking_conflict_is_not_a_locust_failure(executor, recorder, fake_client, authenticated_context):
    # Arrange
    fake_client.routes[("POST", "/booking/create")] = (409, "slot taken")

    # Act
    result = executor.run(authenticated_context, (CREATE_BOOKING,))

    # Assert
    outcome = result.outcome_for("create_booking")
    assert outcome.classification is Classification.CONFLICT
    assert outcome.http_status == 409
    assert fake_client.calls[0].response.marked == "success"
    assert recorder.snapshot().count("conflict", "create_booking") == 1
    assert recorder.snapshot().rate("http_req_failed") == 0


def test_unexpected_status_is_marked_failure(executor, recorder, fake_client, authenticated_context):
    fake_client.routes[("GET", "/dashboard")] = (500, "boom")

    executor.run(authenticated_context, (DASHBOARD,))

    response = fake_client.calls[0].response
    assert response.marked == "failure"
    assert "500" in response.failure_message
    assert recorder.snapshot().count("unexpected_error") == 1


def test_booking_form_is_built_from_generated_values(executor, fake_client, authenticated_context):
    authenticated_context.values.update(item_id=3, size="L", start="2030-01-01", end="2030-01-03")

    executor.run(authenticated_context, (CREATE_BOOKING,))

    assert fake_client.calls[0].kwargs["data"] == {
        "itemId": "3",
        "size": "L",
        "startUseDate": "2030-01-01",
        "endUseDate": "2030-01-03",
    }


def test_availability_flag_is_provided_on_success(executor, fake_client):
    # Arrange
    context = VirtualUserContext(values={"item_id": 1})
    fake_client.routes[("GET", "/api/items/1/check")] = (200, '{"available": true}')

    # Act
    executor.run(context, (CHECK_AVAILABILITY,))

    # Assert
    params = fake_client.calls[0].kwargs["params"]
    assert set(params) == {"size", "start", "end"}
    assert context.values["available"] is True
    assert context.values["availability_checked"] is True


def test_nothing_is_extracted_from_a_failed_step(executor, fake_client):
    context = VirtualUserContext(values={"item_id": 1})
    fake_client.routes[("GET", "/api/items/1/check")] = (400, '{"available": true}')

    result = executor.run(context, (CHECK_AVAILABILITY,))

    assert result.outcomes[0].classification is Classification.EXPECTED_FAILURE
    assert "availability_checked" not in context.values


def test_think_time_is_scaled(fake_client, recorder, authenticated_context):
    # Arrange
    pauses = []
    executor = JourneyExecutor(fake_client, recorder, think_time_scale=0.5, sleep=pauses.append)
    steps = (replace(DASHBOARD, think_time=2.0), replace(DASHBOARD, think_time=(1.0, 3.0)))

    # Act
    executor.run(authenticated_context, steps)

    # Assert
    assert pauses[0] == pytest.approx(1.0)
    assert 0.5 <= pauses[1] <= 1.5


def test_zero_think_time_never_sleeps(executor, sleeps, authenticated_context):
    executor.run(authenticated_context, (replace(DASHBOARD, think_time=0.0),))

    assert sleeps == []


def test_stop_request_prevents_the_next_step(fake_client, recorder, authenticated_context):
    # Arrange
    stop_after = iter([False, True])
    executor = JourneyExecutor(fake_client, recorder, sleep=lambda _: None, should_stop=lambda: next(stop_after))

    # Act
    result = executor.run(authenticated_context, (DASHBOARD, MY_BOOKINGS))

    # Assert
    assert result.stopped
    assert [call.url for call in fake_client.calls] == ["/dashboard"]
    assert recorder.snapshot().requests() == 1
