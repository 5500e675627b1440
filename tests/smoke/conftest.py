"""
Smoke-test fixtures for a live MagicLook deployment.

Provides the ``magiclook_base_url`` session-scoped fixture.  The URL comes
from the active configuration (``MAGICLOOK_BASE_URL`` or the
``PERF_ENV`` default); when nothing answers there the whole smoke suite
is skipped rather than failed, since smoke tests only run by explicit
request (``pytest -m smoke``).
"""

from __future__ import annotations

import os

import pytest

from magiclook_perf.config import get_config
from magiclook_perf.target import is_target_ready


@pytest.fixture(scope="session")
def magiclook_base_url() -> str:
    """Return a reachable MagicLook base URL or skip the suite."""
    base_url = os.environ.get("MAGICLOOK_BASE_URL", get_config("development").BASE_URL)
    if not is_target_ready(base_url):
        pytest.skip(f"MagicLook is not reachable at {base_url}")
    return base_url
