"""
Per-step outcome classification.

Every response the journey executor receives is reduced to one of four
classifications.  The split between ``conflict`` and ``unexpected_error``
follows the MagicLook booking contract: ``400``/``409`` on
``/booking/create`` means the slot was already taken, anything else
outside the expected set is an error.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from dataclasses import dataclass
from enum import Enum


class Classification(str, Enum):
    """Result class of a single HTTP step."""

    SUCCESS = "success"
    EXPECTED_FAILURE = "expected_failure"
    CONFLICT = "conflict"
    UNEXPECTED_ERROR = "unexpected_error"

    @property
    def is_failure(self) -> bool:
        """Only unexpected errors count against ``http_req_failed``."""
        return self is Classification.UNEXPECTED_ERROR


@dataclass(frozen=True)
class Outcome:
    """Classified result of one executed step."""

    step_name: str
    http_status: int
    latency_ms: float
    classification: Classification


def classify(
    status: int,
    body: str,
    *,
    expected: Collection[int],
    conflict: Collection[int] = (),
    expected_failure: Collection[int] = (),
    body_check: Callable[[str], bool] | None = None,
) -> Classification:
    """
    Map a status code and body to a :class:`Classification`.

    An expected status only counts as success when ``body_check`` (if
    any) accepts the body; a body that fails the check is an unexpected
    error even though the status looked right.

    Args:
        status: HTTP status code (``0`` when the transport failed).
        body: Decoded response body.
        expected: Statuses that mean the step worked.
        conflict: Statuses that mean a competing actor won the resource.
        expected_failure: Statuses the step anticipates as a legitimate
            rejection, e.g. ``400`` for an invalid date range.
        body_check: Optional predicate over the body.

    Returns:
        The classification for this response.
    """
    if status in expected:
        if body_check is None or body_check(body):
            return Classification.SUCCESS
        return Classification.UNEXPECTED_ERROR
    if status in conflict:
        return Classification.CONFLICT
    if status in expected_failure:
        return Classification.EXPECTED_FAILURE
    return Classification.UNEXPECTED_ERROR
