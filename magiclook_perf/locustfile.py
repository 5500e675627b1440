# ruff: noqa: E402
"""
Locust entrypoint for the MagicLook load suite.

This is the file that the ``locust`` CLI discovers and loads.  It
imports every concrete user class plus the profile-driven
:class:`~magiclook_perf.profiles.StagedShape`, and wires the run
lifecycle into Locust events:

- ``init``: narrow user classes to the requested ``--tags``, resolve the
  load profile, and attach the run state to the environment
- ``test_start``: probe the target once; an unreachable target aborts
  the run with exit code 2
- ``quitting``: summarise outcomes, evaluate thresholds, and set the
  process exit code (0 pass, 1 breach, 2 setup failure)

Usage examples::

    # Smoke test against a local deployment:
    locust -f magiclook_perf/locustfile.py --headless --tags smoke \\
        --host http://localhost:8080/magiclook

    # Booking contention with an explicit profile:
    locust -f magiclook_perf/locustfile.py --headless --tags contention \\
        --profile contention

Key Concepts Demonstrated:
- Locust ``events.init`` hook for dynamic user-class filtering
- Custom command-line options via ``init_command_line_parser``
- ``sys.path`` manipulation so imports resolve regardless of the
  working directory Locust is launched from
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import gevent
from locust import events
from locust.runners import WorkerRunner

# Locust may be invoked from any directory (project root, CI workspace,
# etc.).  Inserting the project root onto ``sys.path`` guarantees that
# ``from magiclook_perf.…`` imports always resolve.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from magiclook_perf.config import get_config
from magiclook_perf.errors import ProfileError, SetupFailure
from magiclook_perf.profiles import LoadProfile, StagedShape, get_profile
from magiclook_perf.run import EXIT_SETUP_FAILURE, PerfRun, attach_run, get_run
from magiclook_perf.scenarios.availability_api import AvailabilityApiUser
from magiclook_perf.scenarios.booking_cancellation import BookingCancellationUser
from magiclook_perf.scenarios.concurrent_booking import ConcurrentBookingUser
from magiclook_perf.scenarios.filter_search import FilterSearchUser
from magiclook_perf.scenarios.full_journey import FullJourneyUser
from magiclook_perf.scenarios.mixed import MixedLoadUser
from magiclook_perf.scenarios.smoke import SmokeUser
from magiclook_perf.scenarios.spike import SpikeUser
from magiclook_perf.target import probe_target

__all__ = [
    "AvailabilityApiUser",
    "BookingCancellationUser",
    "ConcurrentBookingUser",
    "FilterSearchUser",
    "FullJourneyUser",
    "MixedLoadUser",
    "SmokeUser",
    "SpikeUser",
    "StagedShape",
]

logger = logging.getLogger(__name__)

# Maps CLI ``--tags`` values to concrete user classes.  Each tag is also
# the name of the profile that scenario runs under by default.
TAG_TO_USER_CLASS = {
    "smoke": SmokeUser,
    "journey": FullJourneyUser,
    "cancellation": BookingCancellationUser,
    "filter": FilterSearchUser,
    "contention": ConcurrentBookingUser,
    "spike": SpikeUser,
    "availability": AvailabilityApiUser,
    "mixed": MixedLoadUser,
}


@events.init_command_line_parser.add_listener
def _add_profile_options(parser, **_kwargs):
    parser.add_argument(
        "--profile",
        type=str,
        default="",
        help="Load profile from profiles.yml (defaults to the selected tag)",
    )
    parser.add_argument(
        "--profiles-file",
        type=str,
        default="",
        help="Alternative profiles YAML file",
    )


def resolve_profile(options, settings=None) -> LoadProfile:
    """
    Pick the profile for this run.

    Precedence: ``--profile``, then a single ``--tags`` value that names a
    profile, then the configured default.

    Raises:
        ProfileError: If the chosen profile does not exist or is invalid.
    """
    settings = settings or get_config()
    profile_name = getattr(options, "profile", "") or ""
    profiles_file = Path(getattr(options, "profiles_file", "") or settings.PROFILES_FILE)

    if not profile_name:
        tags = [tag for tag in (getattr(options, "tags", None) or []) if tag in TAG_TO_USER_CLASS]
        profile_name = tags[0] if len(tags) == 1 else settings.PROFILE

    return get_profile(profile_name, profiles_file)


@events.init.add_listener
def _filter_user_classes_by_tag(environment, **_kwargs):
    """
    Select user classes explicitly so ``--tags`` does not spawn empty classes.

    Locust's built-in tag filtering hides individual ``@task`` methods
    but still instantiates every user class.  Each class here is a
    distinct workload, so this listener replaces
    ``environment.user_classes`` entirely with the requested ones.
    """
    options = environment.parsed_options
    selected_tags = set(getattr(options, "tags", None) or [])
    if not selected_tags:
        return

    selected_classes = [
        user_class
        for tag, user_class in TAG_TO_USER_CLASS.items()
        if tag in selected_tags
    ]
    if selected_classes:
        environment.user_classes = selected_classes


@events.init.add_listener
def _attach_run(environment, **_kwargs):
    """Freeze the load profile and share it with users and the shape."""
    settings = get_config()
    try:
        profile = resolve_profile(environment.parsed_options, settings)
    except ProfileError as exc:
        logger.error("Cannot start load test: %s", exc)
        raise SystemExit(EXIT_SETUP_FAILURE) from exc

    run = attach_run(
        environment,
        PerfRun(
            profile=profile,
            base_url=environment.host or settings.BASE_URL,
            think_time_scale=profile.think_time_scale * settings.THINK_TIME_SCALE,
        ),
    )
    StagedShape.profile = profile
    if not getattr(environment, "stop_timeout", None):
        environment.stop_timeout = settings.STOP_TIMEOUT
    logger.info(
        "Profile %s against %s (think time x%.2f)",
        profile.name,
        run.base_url,
        run.think_time_scale,
    )


@events.test_start.add_listener
def _probe_target(environment, **_kwargs):
    """Abort the whole run when the target is not reachable."""
    if isinstance(environment.runner, WorkerRunner):
        return
    run = get_run(environment)
    try:
        probe_target(run.base_url, run.profile.probe_paths, timeout=get_config().PROBE_TIMEOUT)
    except SetupFailure as exc:
        logger.error("%s", exc)
        run.setup_failed = True
        environment.process_exit_code = EXIT_SETUP_FAILURE
        if environment.runner is not None:
            gevent.spawn(environment.runner.quit)


@events.quitting.add_listener
def _evaluate_thresholds(environment, **_kwargs):
    """Turn the run's outcomes into the process exit code."""
    if isinstance(environment.runner, WorkerRunner):
        return
    environment.process_exit_code = get_run(environment).finish()
