"""
Helper utilities for MagicLook load scenarios.

Provides the building blocks that every scenario relies on: credential
pools, the login workflow, registration payloads, session headers, date
arithmetic, body extractors, and randomised form payloads.  Keeping
these in a shared module avoids duplication across scenario files and
makes it easy to adjust data-generation strategies in one place.

Key Concepts Demonstrated:
- Form-encoded login with redirects disabled so the ``302`` and its
  ``Set-Cookie`` are observed directly
- Reusable auth helpers that wrap Locust's ``catch_response`` protocol
- Best-effort extractors: a missing match is an answer, not an error
"""

from __future__ import annotations

import json
import logging
import random
import re
import string
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from magiclook_perf.outcomes import Classification, Outcome

logger = logging.getLogger(__name__)

SESSION_COOKIE = "JSESSIONID"
LOGIN_SUCCESS_STATUSES = frozenset({200, 302})
LOGIN_STEP = "login"

GENDERS = ("men", "women")
CATALOG_CATEGORIES = ("men", "women", "dresses", "suits")
SIZES = ("XS", "S", "M", "L", "XL")


@dataclass(frozen=True)
class Credentials:
    """A username/password pair for one login attempt."""

    username: str
    password: str


class CredentialPool:
    """
    Pre-declared accounts that iterations draw from.

    The accounts must already exist in the target database; the pool
    only decides which one an iteration uses.
    """

    def __init__(self, credentials: Sequence[Credentials]):
        if not credentials:
            raise ValueError("Credential pool must not be empty")
        self._credentials = tuple(credentials)

    @classmethod
    def numbered(cls, prefix: str, size: int, password: str = "test123") -> CredentialPool:
        """Build ``prefix0`` .. ``prefix{size-1}`` sharing one password."""
        return cls([Credentials(f"{prefix}{index}", password) for index in range(size)])

    def __len__(self) -> int:
        return len(self._credentials)

    def pick(self, rng: random.Random | None = None) -> Credentials:
        """Random draw, for scenarios that do not need reproducibility."""
        return (rng or random).choice(self._credentials)

    def by_index(self, index: int) -> Credentials:
        """Deterministic draw that wraps around the pool."""
        return self._credentials[index % len(self._credentials)]


@dataclass(frozen=True)
class LoginAttempt:
    """Result of one login POST: the session token (if any) and its timing."""

    token: str | None
    status: int
    latency_ms: float

    @property
    def succeeded(self) -> bool:
        return bool(self.token)

    def outcome(self) -> Outcome:
        """The attempt as a ``login`` step outcome for the run's metrics."""
        return Outcome(
            step_name=LOGIN_STEP,
            http_status=self.status,
            latency_ms=self.latency_ms,
            classification=(
                Classification.SUCCESS if self.succeeded else Classification.UNEXPECTED_ERROR
            ),
        )


def authenticate(client: Any, credentials: Credentials) -> LoginAttempt:
    """
    Log in with a form POST and capture the session cookie value.

    Redirects are disabled so that the ``302`` MagicLook answers with on
    success is observed directly instead of being followed to the
    dashboard.

    Args:
        client: The Locust HTTP session (or a compatible test double).
        credentials: Account to log in as.

    Returns:
        A :class:`LoginAttempt` whose ``token`` is the ``JSESSIONID``
        value when the status is ``200``/``302`` and the cookie is
        present, otherwise ``None``.  Callers treat a missing token as
        terminal for the iteration; it is never retried.
    """
    start = time.perf_counter()
    with client.post(
        "/login",
        data={"username": credentials.username, "password": credentials.password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        allow_redirects=False,
        name="/login [POST]",
        catch_response=True,
    ) as response:
        latency_ms = (time.perf_counter() - start) * 1000.0
        status = response.status_code or 0
        token = None

        if status not in LOGIN_SUCCESS_STATUSES:
            response.failure(f"Expected 200 or 302, got {status}")
            logger.info("Login failed for %s: status %s", credentials.username, status)
        elif not response.cookies.get(SESSION_COOKIE):
            response.failure("Login response missing session cookie")
            logger.info("Login for %s returned no %s cookie", credentials.username, SESSION_COOKIE)
        else:
            token = response.cookies.get(SESSION_COOKIE)
            response.success()

    return LoginAttempt(token=token, status=status, latency_ms=latency_ms)


def registration_form(context: Any) -> dict[str, str]:
    """Form body for ``/register`` from the identity in ``context.values``."""
    identity = context.values["registration"]
    return {**identity, "confirmPassword": identity["password"]}


def session_headers(token: str) -> dict[str, str]:
    """Build the explicit ``Cookie`` header carrying the session."""
    return {"Cookie": f"{SESSION_COOKIE}={token}"}


def unique_user_identity() -> dict[str, str]:
    """
    Generate a unique registration payload to avoid collisions across runs.

    Combines a millisecond timestamp with a short random suffix so that
    parallel Locust workers (or back-to-back CI runs) never produce
    duplicate usernames.
    """
    ts = int(time.time() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    username = f"loadtest_{ts}_{suffix}"
    return {
        "username": username,
        "firstName": f"Load{suffix}",
        "lastName": "Test",
        "email": f"{username}@test.com",
        "phone": f"91{random.randint(1000000, 9999999)}",
        "password": "Password123",
    }


def future_date(days_from_now: int, today: date | None = None) -> str:
    """Return ``today + days`` as ``YYYY-MM-DD``."""
    return ((today or date.today()) + timedelta(days=days_from_now)).isoformat()


def random_date_range(
    start_offset: tuple[int, int], length: tuple[int, int], today: date | None = None
) -> tuple[str, str]:
    """Pick a start within *start_offset* days and an end *length* days later."""
    start = random.randint(*start_offset)
    end = start + random.randint(*length)
    return future_date(start, today), future_date(end, today)


def regex_extractor(pattern: str) -> Callable[[str], str | None]:
    """Return an extractor yielding the first capture group of *pattern*."""
    compiled = re.compile(pattern)

    def _extract(body: str) -> str | None:
        match = compiled.search(body)
        return match.group(1) if match else None

    return _extract


# Links rendered by the bookings pages: ``/my-bookings/42`` or
# ``booking/42`` / ``booking-42`` on the confirmation page.
extract_booking_id_from_confirmation = regex_extractor(r"booking[/-](\d+)")
extract_booking_id_from_list = regex_extractor(r"my-bookings/(\d+)")


def json_flag_extractor(key: str) -> Callable[[str], bool | None]:
    """Return ``True`` when the JSON body has a truthy *key*, else ``None``."""

    def _extract(body: str) -> bool | None:
        try:
            data = json.loads(body)
        except ValueError:
            return None
        if isinstance(data, dict) and data.get(key):
            return True
        return None

    return _extract


def is_json_array(body: str) -> bool:
    """Body predicate for endpoints that must return a JSON array."""
    try:
        return isinstance(json.loads(body), list)
    except ValueError:
        return False


def is_non_empty(body: str) -> bool:
    return len(body) > 0


def booking_form(context: Any) -> dict[str, str]:
    """Form body for ``/booking/create`` built from the context values."""
    values = context.values
    return {
        "itemId": str(values["item_id"]),
        "size": values["size"],
        "startUseDate": values["start"],
        "endUseDate": values["end"],
    }


def availability_params(context: Any) -> dict[str, str]:
    """Query string for ``/api/items/{item_id}/check``."""
    values = context.values
    return {"size": values["size"], "start": values["start"], "end": values["end"]}
