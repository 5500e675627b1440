"""
Declarative load profiles.

A :class:`LoadProfile` describes *how much* traffic a scenario generates
and *what* counts as a passing run.  Profiles are read from
:file:`profiles.yml` and frozen before the run starts; the
:class:`StagedShape` then asks the active profile, once per Locust tick,
how many users should be running.

Three executor styles are supported, each mirroring a common load-test
pattern:

- **Ramping users**: ``stages`` of ``(duration, target)``; the user
  count moves linearly from the previous target to the next one.
- **Constant users / per-user iterations**: ``users`` for a fixed
  ``duration``, optionally capped at ``iterations`` per user and a
  ``max_duration`` wall-clock limit.
- **Arrival rate**: ``rate`` iterations per ``time_unit`` dispatched
  across a fixed pool of ``pre_allocated_users``.

Key Concepts Demonstrated:
- Frozen dataclasses so a profile cannot drift mid-run
- Pure ``target_at`` function that the Locust shape delegates to, which
  keeps the ramp maths unit-testable without starting Locust
- Human-friendly durations (``"30s"``, ``"2m"``, ``"1m30s"``)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from locust import LoadTestShape

from magiclook_perf.errors import ProfileError
from magiclook_perf.thresholds import Threshold, parse_thresholds

logger = logging.getLogger(__name__)

DEFAULT_PROFILES_FILE = Path(__file__).resolve().parent / "profiles.yml"

_DURATION_RE = re.compile(r"^(?:(?P<h>\d+)h)?(?:(?P<m>\d+)m)?(?:(?P<s>\d+(?:\.\d+)?)s)?$")


def parse_duration(value: Any) -> float:
    """
    Convert ``90``, ``"90s"``, ``"1m30s"`` or ``"2h"`` to seconds.

    Raises:
        ProfileError: If the value is empty, negative, or unparseable.
    """
    if isinstance(value, bool):
        raise ProfileError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        match = _DURATION_RE.match(text)
        if not text or match is None or not any(match.groups()):
            raise ProfileError(f"Invalid duration: {value!r}")
        seconds = (
            int(match.group("h") or 0) * 3600
            + int(match.group("m") or 0) * 60
            + float(match.group("s") or 0)
        )
    if seconds < 0:
        raise ProfileError(f"Duration must not be negative: {value!r}")
    return seconds


@dataclass(frozen=True)
class Stage:
    """Ramp to ``target`` users over ``duration_s`` seconds."""

    duration_s: float
    target: int


@dataclass(frozen=True)
class ArrivalRate:
    """Open-model dispatch: ``rate`` iterations per ``time_unit_s``."""

    rate: float
    time_unit_s: float
    duration_s: float
    pre_allocated_users: int
    max_users: int

    @property
    def per_second(self) -> float:
        return self.rate / self.time_unit_s


@dataclass(frozen=True)
class LoadProfile:
    """
    Immutable description of one scenario's load and pass criteria.

    Attributes:
        name: Profile key in :file:`profiles.yml`.
        description: Free text shown in the run log.
        stages: Ramp stages (empty in arrival-rate mode).
        start_users: User count before the first stage begins.
        arrival_rate: Arrival-rate settings, or ``None`` for closed model.
        iterations_per_user: Stop each user after this many iterations.
        max_duration_s: Hard wall-clock limit, overriding stage totals.
        thresholds: Parsed pass/fail predicates.
        probe_paths: Paths tried, in order, by the pre-run reachability
            probe; the first ``200`` wins.
        think_time_scale: Multiplier applied to every step's think time.
    """

    name: str
    description: str = ""
    stages: tuple[Stage, ...] = ()
    start_users: int = 0
    arrival_rate: ArrivalRate | None = None
    iterations_per_user: int | None = None
    max_duration_s: float | None = None
    thresholds: tuple[Threshold, ...] = ()
    probe_paths: tuple[str, ...] = ("/login",)
    think_time_scale: float = 1.0

    def __post_init__(self) -> None:
        if bool(self.stages) == (self.arrival_rate is not None):
            raise ProfileError(f"{self.name}: define either stages or an arrival rate")
        if any(stage.duration_s <= 0 or stage.target < 0 for stage in self.stages):
            raise ProfileError(f"{self.name}: stages need a positive duration and target >= 0")
        if self.start_users < 0:
            raise ProfileError(f"{self.name}: start_users must be >= 0")
        if self.iterations_per_user is not None and self.iterations_per_user < 1:
            raise ProfileError(f"{self.name}: iterations must be >= 1")
        if self.think_time_scale < 0:
            raise ProfileError(f"{self.name}: think_time_scale must be >= 0")
        arrival = self.arrival_rate
        if arrival is not None:
            if arrival.rate <= 0 or arrival.time_unit_s <= 0 or arrival.duration_s <= 0:
                raise ProfileError(f"{self.name}: arrival rate, time unit and duration must be > 0")
            if not 1 <= arrival.pre_allocated_users <= arrival.max_users:
                raise ProfileError(f"{self.name}: need 1 <= pre_allocated_users <= max_users")

    @property
    def deadline_s(self) -> float:
        """Wall-clock second at which no new iteration may start."""
        if self.arrival_rate is not None:
            planned = self.arrival_rate.duration_s
        else:
            planned = sum(stage.duration_s for stage in self.stages)
        if self.max_duration_s is not None:
            return min(planned, self.max_duration_s)
        return planned

    def target_at(self, elapsed_s: float) -> tuple[int, float] | None:
        """
        Return ``(users, spawn_rate)`` for this point of the run.

        ``None`` means the deadline has passed and the run should stop.
        Inside a stage the user count is interpolated linearly between the
        previous stage's target and this stage's target.
        """
        if elapsed_s >= self.deadline_s:
            return None

        if self.arrival_rate is not None:
            users = self.arrival_rate.pre_allocated_users
            return users, float(users)

        previous = self.start_users
        stage_start = 0.0
        for stage in self.stages:
            stage_end = stage_start + stage.duration_s
            if elapsed_s < stage_end:
                fraction = (elapsed_s - stage_start) / stage.duration_s
                users = round(previous + (stage.target - previous) * fraction)
                if stage.target == previous:
                    # Flat stage: bring every user up in the first tick.
                    spawn_rate = float(max(1, stage.target))
                else:
                    spawn_rate = max(1.0, abs(stage.target - previous) / stage.duration_s)
                return users, spawn_rate
            previous = stage.target
            stage_start = stage_end
        return None

    def pacing_interval(self) -> float | None:
        """
        Seconds between iteration starts for one pooled user.

        Only defined in arrival-rate mode, where the global rate is split
        evenly across the pre-allocated pool.
        """
        if self.arrival_rate is None:
            return None
        return self.arrival_rate.pre_allocated_users / self.arrival_rate.per_second


def _build_profile(name: str, data: dict[str, Any]) -> LoadProfile:
    if not isinstance(data, dict):
        raise ProfileError(f"Profile {name} must be a mapping")

    stages: tuple[Stage, ...] = ()
    arrival: ArrivalRate | None = None
    start_users = int(data.get("start_users", 0))

    if "arrival_rate" in data:
        raw = data["arrival_rate"] or {}
        try:
            arrival = ArrivalRate(
                rate=float(raw["rate"]),
                time_unit_s=parse_duration(raw.get("time_unit", "1s")),
                duration_s=parse_duration(raw["duration"]),
                pre_allocated_users=int(raw["pre_allocated_users"]),
                max_users=int(raw.get("max_users", raw["pre_allocated_users"])),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProfileError(f"Profile {name}: invalid arrival_rate block") from exc
    elif "stages" in data:
        try:
            stages = tuple(
                Stage(duration_s=parse_duration(stage["duration"]), target=int(stage["target"]))
                for stage in data["stages"]
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProfileError(f"Profile {name}: each stage needs duration and target") from exc
    elif "users" in data:
        users = int(data["users"])
        duration = data.get("duration", data.get("max_duration"))
        if duration is None:
            raise ProfileError(f"Profile {name}: constant users need a duration")
        stages = (Stage(duration_s=parse_duration(duration), target=users),)
        start_users = users

    iterations = data.get("iterations")
    max_duration = data.get("max_duration")
    probe_paths = data.get("probe_paths", ["/login"])
    if isinstance(probe_paths, str):
        probe_paths = [probe_paths]

    return LoadProfile(
        name=name,
        description=str(data.get("description", "")).strip(),
        stages=stages,
        start_users=start_users,
        arrival_rate=arrival,
        iterations_per_user=int(iterations) if iterations is not None else None,
        max_duration_s=parse_duration(max_duration) if max_duration is not None else None,
        thresholds=parse_thresholds(data.get("thresholds") or {}),
        probe_paths=tuple(str(path) for path in probe_paths),
        think_time_scale=float(data.get("think_time_scale", 1.0)),
    )


@lru_cache(maxsize=8)
def load_profiles(path: Path = DEFAULT_PROFILES_FILE) -> dict[str, LoadProfile]:
    """
    Read every profile from a YAML file.

    Raises:
        ProfileError: If the file is missing, not a mapping, or any
            profile is invalid.
    """
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ProfileError(f"Cannot read profiles file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProfileError(f"Profiles file {path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ProfileError(f"Profiles file {path} must contain a mapping of profiles")

    profiles = {str(name): _build_profile(str(name), body) for name, body in data.items()}
    logger.debug("Loaded %d load profiles from %s", len(profiles), path)
    return profiles


def get_profile(name: str, path: Path = DEFAULT_PROFILES_FILE) -> LoadProfile:
    """Return the named profile, raising :class:`ProfileError` if absent."""
    profiles = load_profiles(Path(path))
    try:
        return profiles[name]
    except KeyError:
        known = ", ".join(sorted(profiles))
        raise ProfileError(f"Unknown profile {name!r}; known profiles: {known}") from None


class StagedShape(LoadTestShape):
    """
    Locust shape that follows the active :class:`LoadProfile`.

    The locustfile assigns :attr:`profile` during the ``init`` event, before
    the runner starts ticking.  Returning ``None`` from :meth:`tick` is
    Locust's signal to stop the test, which is how the profile deadline is
    enforced.
    """

    profile: LoadProfile | None = None
    _seen_users = False

    def tick(self) -> tuple[int, float] | None:
        if self.profile is None:
            return None
        if self._budget_exhausted():
            logger.info("Every user finished its %s iterations; stopping", self.profile.iterations_per_user)
            return None
        return self.profile.target_at(self.get_run_time())

    def _budget_exhausted(self) -> bool:
        # Users stopped by their iteration budget are not respawned, so once
        # the pool has drained there is nothing left to wait for.
        runner = getattr(self, "runner", None)
        if self.profile.iterations_per_user is None or runner is None:
            return False
        if runner.user_count > 0:
            self._seen_users = True
            return False
        return self._seen_users
