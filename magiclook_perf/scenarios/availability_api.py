"""
Availability API scenario.

Open-model load on ``/api/items/{item_id}/check``: the ``availability``
profile dispatches a fixed number of iterations per second across a
pre-allocated pool, regardless of how fast the server answers.  Each
iteration queries a random item, size and date range.
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import CHECK_AVAILABILITY, pick_availability_query


@tag("availability")
class AvailabilityApiUser(JourneyUser):
    """One availability query per iteration, no session."""

    requires_login = False

    journey = (
        replace(CHECK_AVAILABILITY, prepare=pick_availability_query, think_time=0.1),
    )
