"""
Journey execution: ordered HTTP steps threaded through one iteration.

A *journey* is a tuple of :class:`JourneyStep` objects defined at import
time.  For every iteration the virtual user builds a fresh
:class:`VirtualUserContext` and hands both to a :class:`JourneyExecutor`,
which sends the steps in order, classifies each response, and records the
outcome.

Values flow between steps through ``context.values``: a step can
*extract* something from its response body (a booking id), *provide* a
flag on success (availability checked), and later steps name the values
they need either as path template fields (``/my-bookings/{booking_id}``)
or through ``requires``.  When a required value is missing the step is
skipped and counted, and the journey carries on with the steps that do
not depend on it.

Key Concepts Demonstrated:
- Explicit per-iteration context instead of shared session globals
- ``catch_response=True`` so classification decides what Locust counts
  as a failure (a booking conflict is not a failed request)
- Fail-fast on a missing session; skip-not-fail on missing values
"""

from __future__ import annotations

import logging
import random
import string
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import gevent

from magiclook_perf.errors import AuthFailure, DependencyMissing, UnexpectedStatus
from magiclook_perf.helpers import Credentials, session_headers
from magiclook_perf.metrics import OutcomeRecorder
from magiclook_perf.outcomes import Classification, Outcome, classify

logger = logging.getLogger(__name__)

Extractor = Callable[[str], Any]
ValueFactory = Callable[..., dict[str, Any]]


class IterationState(str, Enum):
    """Lifecycle of one iteration; no transition ever goes backwards."""

    START = "start"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    AUTH_FAILED = "auth_failed"
    COMPLETED = "completed"


@dataclass
class VirtualUserContext:
    """
    State owned by exactly one iteration.

    Attributes:
        credentials: Identity used to log in, or ``None`` for anonymous
            journeys.
        session_token: ``JSESSIONID`` value, present only after a
            successful login.
        correlation_id: Unique per iteration; sent as ``X-Correlation-ID``
            so server logs can be matched to a virtual user.
        values: Generated and extracted values shared between steps.
        state: Current :class:`IterationState`.
    """

    credentials: Credentials | None = None
    session_token: str | None = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    values: dict[str, Any] = field(default_factory=dict)
    state: IterationState = IterationState.START

    @property
    def is_authenticated(self) -> bool:
        return bool(self.session_token)


@dataclass(frozen=True)
class JourneyStep:
    """
    One HTTP call in a journey.

    Attributes:
        name: Metric name for this step (``create_booking``).
        method: HTTP verb.
        path: Path template; ``{field}`` placeholders are filled from
            ``context.values`` and are implicitly required.
        expected: Statuses that mean success.
        conflict: Statuses that mean another actor won the resource.
        expected_failure: Statuses that are a legitimate rejection.
        authenticated: Whether the step needs a session; the executor
            never sends such a step without one.
        follow_redirects: ``False`` to observe ``302`` directly.
        prepare: Generates values (random category, dates) before the
            path is formatted.
        params: Builds the query string from the context.
        form: Builds the form-encoded body from the context.
        body_check: Extra success predicate over the body.
        extract: ``(key, extractor)`` pairs run on successful responses;
            an extractor returning ``None`` leaves the key unset.
        provides: Keys set to ``True`` when the step succeeds.
        requires: Additional keys that must be present to run.
        think_time: Pause after the step, fixed or ``(low, high)``.
    """

    name: str
    method: str
    path: str
    expected: frozenset[int] = frozenset({200})
    conflict: frozenset[int] = frozenset()
    expected_failure: frozenset[int] = frozenset()
    authenticated: bool = True
    follow_redirects: bool = True
    prepare: ValueFactory | None = None
    params: ValueFactory | None = None
    form: ValueFactory | None = None
    body_check: Callable[[str], bool] | None = None
    extract: tuple[tuple[str, Extractor], ...] = ()
    provides: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    think_time: float | tuple[float, float] = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        for attr in ("expected", "conflict", "expected_failure"):
            object.__setattr__(self, attr, frozenset(getattr(self, attr)))

    @property
    def label(self) -> str:
        """Locust stats name, e.g. ``/my-bookings/[booking_id]/cancel [POST]``."""
        return f"{self.path.replace('{', '[').replace('}', ']')} [{self.method}]"

    def required_values(self) -> tuple[str, ...]:
        fields = [
            field_name
            for _, field_name, _, _ in string.Formatter().parse(self.path)
            if field_name
        ]
        return tuple(dict.fromkeys([*fields, *self.requires]))

    def classify(self, status: int, body: str) -> Classification:
        return classify(
            status,
            body,
            expected=self.expected,
            conflict=self.conflict,
            expected_failure=self.expected_failure,
            body_check=self.body_check,
        )


@dataclass
class JourneyResult:
    """What happened during one journey run."""

    outcomes: list[Outcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    aborted: bool = False
    stopped: bool = False

    def outcome_for(self, step_name: str) -> Outcome | None:
        for outcome in self.outcomes:
            if outcome.step_name == step_name:
                return outcome
        return None


class JourneyExecutor:
    """
    Runs journeys for one virtual user.

    Args:
        client: A Locust ``HttpSession`` (or any object exposing the same
            ``request(..., catch_response=True)`` context-manager API).
        recorder: Shared run-wide :class:`OutcomeRecorder`.
        think_time_scale: Multiplier for every step's think time.
        sleep: Cooperative sleep; ``gevent.sleep`` yields to other users.
        should_stop: Checked before each step; once it returns ``True`` no
            further step is sent.
    """

    def __init__(
        self,
        client: Any,
        recorder: OutcomeRecorder,
        *,
        think_time_scale: float = 1.0,
        sleep: Callable[[float], Any] = gevent.sleep,
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        self.client = client
        self.recorder = recorder
        self.think_time_scale = think_time_scale
        self._sleep = sleep
        self._should_stop = should_stop

    def run(self, context: VirtualUserContext, steps: tuple[JourneyStep, ...]) -> JourneyResult:
        """
        Execute *steps* in order for *context*.

        Never raises for per-step problems: unexpected statuses are
        classified and recorded, missing values cause skips, and a missing
        session aborts the remainder of the journey.  A stop request ends
        the journey before the next step is sent.
        """
        result = JourneyResult()

        for index, step in enumerate(steps):
            if self._should_stop is not None and self._should_stop():
                logger.debug("[%s] stopping before %s", context.correlation_id, step.name)
                result.stopped = True
                return result

            if step.authenticated and not context.is_authenticated:
                username = context.credentials.username if context.credentials else "anonymous"
                logger.warning("%s; aborting journey at %s", AuthFailure(username), step.name)
                self.recorder.record_auth_failure()
                result.skipped.extend(remaining.name for remaining in steps[index:])
                result.aborted = True
                context.state = IterationState.AUTH_FAILED
                return result

            if step.prepare is not None:
                context.values.update(step.prepare(context))

            missing = tuple(key for key in step.required_values() if context.values.get(key) is None)
            if missing:
                logger.debug("[%s] %s", context.correlation_id, DependencyMissing(step.name, missing))
                self.recorder.record_skip(step.name)
                result.skipped.append(step.name)
                continue

            outcome = self.execute(context, step)
            self.recorder.record(outcome)
            result.outcomes.append(outcome)
            self._think(step)

        return result

    def execute(self, context: VirtualUserContext, step: JourneyStep) -> Outcome:
        """Send one step and return its classified :class:`Outcome`."""
        headers = {"X-Correlation-ID": context.correlation_id}
        if context.session_token:
            headers.update(session_headers(context.session_token))

        start = time.perf_counter()
        with self.client.request(
            step.method,
            step.path.format(**context.values),
            params=step.params(context) if step.params else None,
            data=step.form(context) if step.form else None,
            headers=headers,
            allow_redirects=step.follow_redirects,
            name=step.label,
            catch_response=True,
        ) as response:
            latency_ms = (time.perf_counter() - start) * 1000.0
            status = response.status_code or 0
            body = response.text or ""
            classification = step.classify(status, body)

            if classification is Classification.UNEXPECTED_ERROR:
                if status in step.expected:
                    response.failure(f"{step.name} returned {status} with an unexpected body")
                else:
                    response.failure(str(UnexpectedStatus(step.name, status)))
            else:
                response.success()

        if classification is Classification.SUCCESS:
            self._extract(context, step, body)
        return Outcome(
            step_name=step.name,
            http_status=status,
            latency_ms=latency_ms,
            classification=classification,
        )

    def _extract(self, context: VirtualUserContext, step: JourneyStep, body: str) -> None:
        for key in step.provides:
            context.values[key] = True
        for key, extractor in step.extract:
            value = extractor(body)
            if value is not None:
                context.values[key] = value

    def _think(self, step: JourneyStep) -> None:
        if isinstance(step.think_time, tuple):
            pause = random.uniform(*step.think_time)
        else:
            pause = float(step.think_time)
        pause *= self.think_time_scale
        if pause > 0:
            self._sleep(pause)
