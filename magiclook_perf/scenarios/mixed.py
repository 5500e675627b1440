"""
Production-like mixed MagicLook traffic.

Defines :class:`MixedLoadUser`, the scenario for the ``mixed`` ramping
profile.  Each iteration logs in and performs one weighted action
(total weight 10):

- **30 % browse**: dashboard then a catalogue section (3)
- **30 % availability**: a single availability check (3)
- **30 % book**: a booking attempt on a near-term slot (3)
- **10 % review**: the bookings list (1)

Key Concepts Demonstrated:
- Locust ``@task(weight)`` for proportional journey selection
- Thin class; every action is a step tuple run by
  :meth:`~magiclook_perf.scenarios.base.MagicLookUser.run_iteration`
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag, task

from magiclook_perf.helpers import CredentialPool, random_date_range
from magiclook_perf.journey import VirtualUserContext
from magiclook_perf.scenarios.base import MagicLookUser
from magiclook_perf.steps import (
    CHECK_AVAILABILITY,
    CREATE_BOOKING,
    DASHBOARD,
    LIST_ITEMS,
    MY_BOOKINGS,
    combine,
    pick_test_item,
)


def _near_term_window(context: VirtualUserContext) -> dict[str, str]:
    start, end = random_date_range((1, 3), (1, 2))
    return {"start": start, "end": end}


BROWSE = (DASHBOARD, replace(LIST_ITEMS, think_time=1.0))
AVAILABILITY = (CHECK_AVAILABILITY,)
BOOK = (replace(CREATE_BOOKING, prepare=combine(pick_test_item, _near_term_window), think_time=1.0),)
REVIEW = (MY_BOOKINGS,)


@tag("mixed")
class MixedLoadUser(MagicLookUser):
    """
    Weighted blend over a large pre-seeded account pool.

    Credentials are assigned deterministically so a given user index
    always reuses the same accounts across runs.
    """

    credential_pool = CredentialPool.numbered("testuser", 1000)
    deterministic_credentials = True

    @task(3)
    def browse(self) -> None:
        self.run_iteration(BROWSE)

    @task(3)
    def check_availability(self) -> None:
        self.run_iteration(AVAILABILITY)

    @task(3)
    def book(self) -> None:
        self.run_iteration(BOOK)

    @task(1)
    def review_bookings(self) -> None:
        """Open the bookings list, the least frequent action."""
        self.run_iteration(REVIEW)
