"""
Booking contention scenario.

Every virtual user tries to book the *same* item, size and dates.  At
most one booking per slot can win; everyone else should receive a
``400``/``409`` which is classified as a ``conflict``, not an error.
The run passes when at least one booking succeeded and the rest were
rejected cleanly.

Key Concepts Demonstrated:
- Deterministic credential assignment so each user index always logs in
  as the same account
- Availability check as an explicit dependency of the booking step
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.helpers import CredentialPool, future_date
from magiclook_perf.journey import VirtualUserContext
from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import CHECK_AVAILABILITY, CREATE_BOOKING

CONTESTED_ITEM = 1
CONTESTED_SIZE = "M"
CONTESTED_START_DAYS = 2
CONTESTED_LENGTH_DAYS = 2


def contested_slot(context: VirtualUserContext) -> dict[str, object]:
    return {
        "item_id": CONTESTED_ITEM,
        "size": CONTESTED_SIZE,
        "start": future_date(CONTESTED_START_DAYS),
        "end": future_date(CONTESTED_START_DAYS + CONTESTED_LENGTH_DAYS),
    }


@tag("contention")
class ConcurrentBookingUser(JourneyUser):
    """All users race for :data:`CONTESTED_ITEM` on the same dates."""

    credential_pool = CredentialPool.numbered("testuser", 50)
    deterministic_credentials = True

    journey = (
        replace(CHECK_AVAILABILITY, prepare=contested_slot, expected_failure=frozenset(), think_time=0.0),
        replace(
            CREATE_BOOKING,
            prepare=None,
            requires=(*CREATE_BOOKING.requires, "availability_checked"),
        ),
    )
