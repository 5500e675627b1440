"""
Shared abstract Locust users for MagicLook scenarios.

:class:`MagicLookUser` turns one Locust task execution into one
*iteration*:

1. build a fresh :class:`~magiclook_perf.journey.VirtualUserContext`
   and clear the cookie jar, so nothing leaks between iterations;
2. optionally run anonymous pre-login steps (registration);
3. authenticate, aborting the iteration on failure;
4. hand the journey to a :class:`~magiclook_perf.journey.JourneyExecutor`.

:class:`JourneyUser` adds a single task that runs a declared journey, so
most concrete scenarios only declare a credential pool and a step tuple.
Weighted mixes subclass :class:`MagicLookUser` and call
:meth:`MagicLookUser.run_iteration` from several ``@task`` methods.

Key Concepts Demonstrated:
- Abstract Locust base class for DRY scenario authoring
- Per-iteration re-authentication so iterations stay comparable
- Per-user iteration budgets and arrival-rate pacing driven by the
  active load profile
"""

from __future__ import annotations

import itertools
import logging
import time

from locust import HttpUser, task
from locust.exception import StopUser
from locust.user.task import LOCUST_STATE_STOPPING
from locust.user.wait_time import constant_pacing

from magiclook_perf.config import get_config
from magiclook_perf.helpers import CredentialPool, Credentials, authenticate
from magiclook_perf.journey import (
    IterationState,
    JourneyExecutor,
    JourneyResult,
    JourneyStep,
    VirtualUserContext,
)
from magiclook_perf.run import get_run

logger = logging.getLogger(__name__)


class MagicLookUser(HttpUser):
    """
    Base user that runs one authenticated journey per iteration.

    ``abstract = True`` tells Locust not to spawn this class directly;
    only its concrete subclasses.

    Attributes:
        credential_pool: Accounts iterations log in as.
        deterministic_credentials: Draw by ``(user index, iteration)``
            instead of at random.
        requires_login: ``False`` for anonymous journeys.
        pre_login_journey: Anonymous steps run before login, such as
            registering the account the iteration then logs in with.
        journey: Steps run after login.
        iterations_done: Iterations this user has started.
    """

    abstract = True
    host = get_config().BASE_URL

    credential_pool: CredentialPool | None = None
    deterministic_credentials = False
    requires_login = True
    pre_login_journey: tuple[JourneyStep, ...] = ()
    journey: tuple[JourneyStep, ...] = ()

    iterations_done: int
    user_number: int

    _numbers = itertools.count()

    def on_start(self) -> None:
        """Bind the run state and a journey executor for this user."""
        self.iterations_done = 0
        self.user_number = next(self._numbers)
        self._cp_last_run = time.time()
        self.perf_run = get_run(self.environment)
        self.executor = JourneyExecutor(
            self.client,
            self.perf_run.recorder,
            think_time_scale=self.perf_run.think_time_scale,
            should_stop=self.is_stopping,
        )

    def wait_time(self) -> float:
        """
        Pause between iterations.

        Closed-model profiles iterate back to back (journeys carry their
        own think time).  Arrival-rate profiles pace each pooled user so
        the pool as a whole starts ``rate`` iterations per time unit.
        """
        interval = self.perf_run.profile.pacing_interval()
        if interval is None:
            return 0.0
        return constant_pacing(interval)(self)

    def is_stopping(self) -> bool:
        """True once Locust has asked this user to stop gracefully."""
        return self._state == LOCUST_STATE_STOPPING

    def next_credentials(self) -> Credentials | None:
        if self.credential_pool is None:
            return None
        if self.deterministic_credentials:
            return self.credential_pool.by_index(self.user_number * max(self.iterations_done, 1))
        return self.credential_pool.pick()

    def start_iteration(self) -> VirtualUserContext:
        """
        Count the iteration and return a fresh context.

        Raises:
            StopUser: When the profile's per-user iteration budget is used up.
        """
        budget = self.perf_run.profile.iterations_per_user
        if budget is not None and self.iterations_done >= budget:
            raise StopUser()
        self.iterations_done += 1
        self.perf_run.recorder.record_iteration()
        self.client.cookies.clear()
        return VirtualUserContext(credentials=self.next_credentials())

    def login(self, context: VirtualUserContext) -> bool:
        """Authenticate *context*; record and report failure as terminal."""
        if context.credentials is None:
            context.state = IterationState.AUTH_FAILED
            self.perf_run.recorder.record_auth_failure()
            return False

        context.state = IterationState.AUTHENTICATING
        attempt = authenticate(self.client, context.credentials)
        self.perf_run.recorder.record(attempt.outcome())
        if not attempt.succeeded:
            context.state = IterationState.AUTH_FAILED
            self.perf_run.recorder.record_auth_failure()
            return False

        context.session_token = attempt.token
        context.state = IterationState.AUTHENTICATED
        return True

    def run_iteration(self, steps: tuple[JourneyStep, ...]) -> JourneyResult | None:
        """
        Run one full iteration of *steps*.

        Returns:
            The journey result, or ``None`` if the iteration ended before
            the journey because authentication failed or the user is
            stopping.
        """
        if self.is_stopping():
            return None
        context = self.start_iteration()
        if self.pre_login_journey:
            self.executor.run(context, self.pre_login_journey)
        if self.requires_login and not self.login(context):
            logger.debug("[%s] iteration aborted: authentication failed", context.correlation_id)
            return None
        result = self.executor.run(context, steps)
        if not (result.aborted or result.stopped):
            context.state = IterationState.COMPLETED
        return result


class JourneyUser(MagicLookUser):
    """
    User whose every iteration runs the same :attr:`journey`.

    Weighted mixes inherit from :class:`MagicLookUser` directly and
    declare one ``@task`` per journey instead.
    """

    abstract = True

    @task
    def iteration(self) -> None:
        """Run the declared journey once."""
        self.run_iteration(self.journey)
