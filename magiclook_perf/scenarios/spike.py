"""
Spike scenario: a sudden burst of anonymous visitors.

No login; each iteration loads the login page, lists a catalogue
section and checks availability, the pages a marketing campaign would
send people to.  Run it under the ``spike`` profile, which ramps from a
small base to a multiple of it within seconds and back down.
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import CHECK_AVAILABILITY, LIST_ITEMS, LOGIN_PAGE


@tag("spike")
class SpikeUser(JourneyUser):
    """Anonymous public-page traffic."""

    requires_login = False

    journey = (
        replace(LOGIN_PAGE, name="landing"),
        replace(LOGIN_PAGE, think_time=0.5),
        replace(LIST_ITEMS, authenticated=False, think_time=0.5),
        replace(CHECK_AVAILABILITY, think_time=0.5),
    )
