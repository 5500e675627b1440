"""
Smoke scenario: every MagicLook page in one short, light run.

Defines :class:`SmokeUser`, meant to run under the ``smoke`` profile
(three users for one minute) before any heavier scenario.  It touches the
public pages, logs in, walks the catalogue through to a booking, and
finishes on the public JSON APIs, so a broken endpoint shows up as a
named failure rather than as noise in a load run.

The booking is only attempted when the availability check reported the
slot as free; otherwise the step is skipped and counted.
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.helpers import CredentialPool, Credentials
from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import (
    BOOKING_FORM,
    BROWSE_CATEGORY,
    CATEGORIES_API,
    CHECK_AVAILABILITY,
    CREATE_BOOKING,
    DASHBOARD,
    HOME,
    ITEM_DETAIL,
    LOGIN_PAGE,
    LOGOUT,
    MY_BOOKINGS,
    POPULAR_ITEMS_API,
    PROFILE,
)


def _mentions(*needles: str):
    def _check(body: str) -> bool:
        return any(needle in body for needle in needles)

    return _check


@tag("smoke")
class SmokeUser(JourneyUser):
    """Single-account walk through the whole application."""

    credential_pool = CredentialPool([Credentials("smoketest", "test123")])

    pre_login_journey = (
        replace(HOME, body_check=_mentions("MagicLook")),
        replace(LOGIN_PAGE, body_check=_mentions("password")),
    )

    journey = (
        DASHBOARD,
        BROWSE_CATEGORY,
        ITEM_DETAIL,
        CHECK_AVAILABILITY,
        BOOKING_FORM,
        replace(CREATE_BOOKING, requires=(*CREATE_BOOKING.requires, "available")),
        MY_BOOKINGS,
        PROFILE,
        LOGOUT,
        CATEGORIES_API,
        POPULAR_ITEMS_API,
    )
