"""
Load-test configuration.

Defines environment-specific configuration classes for the MagicLook
load suite.  Each class captures where the target application lives,
which load profile to run, and operational settings such as probe
timeouts.  The ``get_config`` factory selects the right class based on
the ``PERF_ENV`` environment variable (or an explicit key).

Load *shapes* and pass/fail thresholds are not configured here; they
live in :file:`profiles.yml` so that a scenario's traffic and its gate
are reviewed together.
"""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent


class Config:
    """
    Base (shared) configuration.

    All environment-specific classes inherit from ``Config`` so that
    common defaults only need to be stated once.  Individual settings
    can be overridden by environment variables.
    """

    # Base URL including the servlet context path; request paths are
    # appended to it verbatim (``/login`` -> ``.../magiclook/login``).
    BASE_URL: str = os.environ.get("MAGICLOOK_BASE_URL", "http://localhost:8080/magiclook")

    # Profile used when neither ``--profile`` nor a scenario tag picks one.
    PROFILE: str = os.environ.get("MAGICLOOK_PROFILE", "smoke")

    PROFILES_FILE: Path = Path(
        os.environ.get("MAGICLOOK_PROFILES_FILE", str(PACKAGE_DIR / "profiles.yml"))
    )

    # Multiplier for every journey step's think time; 0 disables pauses.
    THINK_TIME_SCALE: float = float(os.environ.get("THINK_TIME_SCALE", "1.0"))

    # Seconds the pre-run reachability probe waits per path.
    PROBE_TIMEOUT: int = int(os.environ.get("PROBE_TIMEOUT", "5"))

    # Seconds users get to finish their current request once the run ends,
    # used when --stop-timeout is not given.
    STOP_TIMEOUT: float = float(os.environ.get("STOP_TIMEOUT", "30"))


class DevelopmentConfig(Config):
    """Local runs against an application started on the developer machine."""


class TestingConfig(Config):
    """
    Test-suite overrides.

    Points the base URL at a non-routable host so unit tests never
    accidentally hit a real deployment, and disables think time so
    journeys complete instantly.
    """

    BASE_URL: str = os.environ.get("TEST_MAGICLOOK_BASE_URL", "http://magiclook.test/magiclook")
    THINK_TIME_SCALE: float = 0.0
    PROBE_TIMEOUT: int = 1


class CIConfig(Config):
    """
    CI pipeline overrides.

    The application runs as a compose service next to the load generator,
    so the default host is the service name rather than localhost.
    """

    BASE_URL: str = os.environ.get("MAGICLOOK_BASE_URL", "http://magiclook:8080/magiclook")
    PROBE_TIMEOUT: int = int(os.environ.get("PROBE_TIMEOUT", "10"))


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "ci": CIConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or ``"ci"``.  When
            *None*, the ``PERF_ENV`` environment variable is consulted,
            falling back to ``"development"`` if unset.

    Returns:
        The ``Config`` subclass matching the requested environment,
        or ``DevelopmentConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("PERF_ENV", "development")
    return config.get(env, config["default"])
