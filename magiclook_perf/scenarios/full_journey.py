"""
Full user journey: a brand-new customer from sign-up to logout.

Each iteration registers a unique account, logs in with it, browses a
catalogue section, checks availability, books, reviews the bookings list
(plain and filtered), and logs out.  Because every iteration creates a
user, this scenario also exercises the registration write path.

Key Concepts Demonstrated:
- Per-iteration identities from
  :func:`~magiclook_perf.helpers.unique_user_identity`, so parallel
  workers never collide on a username
- Registration as an anonymous pre-login step
"""

from __future__ import annotations

from locust import tag

from magiclook_perf.helpers import Credentials, unique_user_identity
from magiclook_perf.journey import VirtualUserContext
from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import (
    CHECK_AVAILABILITY,
    CREATE_BOOKING,
    DASHBOARD,
    LIST_ITEMS,
    LOGOUT,
    MY_BOOKINGS,
    MY_BOOKINGS_FILTERED,
    REGISTER,
)


@tag("journey")
class FullJourneyUser(JourneyUser):
    """Registers a fresh account every iteration and books with it."""

    pre_login_journey = (REGISTER,)

    journey = (
        DASHBOARD,
        LIST_ITEMS,
        CHECK_AVAILABILITY,
        CREATE_BOOKING,
        MY_BOOKINGS,
        MY_BOOKINGS_FILTERED,
        LOGOUT,
    )

    def start_iteration(self) -> VirtualUserContext:
        context = super().start_iteration()
        identity = unique_user_identity()
        context.credentials = Credentials(identity["username"], identity["password"])
        context.values["registration"] = identity
        return context
