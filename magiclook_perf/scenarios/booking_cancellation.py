"""
Booking cancellation scenario.

Each iteration books an item, finds the booking in the list, opens the
cancellation summary, cancels, and reloads the list to confirm.  The
cancel steps need a ``booking_id``; when neither the confirmation page
nor the list yields one they are skipped, not failed, so a full catalogue
does not masquerade as a cancellation bug.
"""

from __future__ import annotations

from dataclasses import replace

from locust import tag

from magiclook_perf.helpers import CredentialPool, random_date_range
from magiclook_perf.journey import VirtualUserContext
from magiclook_perf.scenarios.base import JourneyUser
from magiclook_perf.steps import (
    CANCEL_BOOKING,
    CANCEL_INFO,
    CREATE_BOOKING,
    MY_BOOKINGS,
    combine,
    pick_test_item,
)


def _cancellable_window(context: VirtualUserContext) -> dict[str, str]:
    # Far enough out that the booking is still cancellable.
    start, end = random_date_range((2, 7), (2, 4))
    return {"start": start, "end": end}


@tag("cancellation")
class BookingCancellationUser(JourneyUser):
    """Create-then-cancel loop over a pool of pre-seeded accounts."""

    credential_pool = CredentialPool.numbered("testuser", 50)

    journey = (
        replace(CREATE_BOOKING, prepare=combine(pick_test_item, _cancellable_window), think_time=1.0),
        MY_BOOKINGS,
        CANCEL_INFO,
        CANCEL_BOOKING,
        replace(MY_BOOKINGS, name="verify_bookings", extract=(), think_time=2.0),
    )
