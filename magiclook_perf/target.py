"""Reachability checks for the MagicLook deployment under test."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import requests

from magiclook_perf.errors import SetupFailure

logger = logging.getLogger(__name__)


def is_target_ready(base_url: str, path: str = "/login", timeout: int = 2) -> bool:
    """Return True when ``base_url + path`` answers with 200."""
    try:
        response = requests.get(f"{base_url}{path}", timeout=timeout)
    except requests.RequestException:
        return False
    return response.status_code == 200


def probe_target(base_url: str, paths: Sequence[str] = ("/login",), timeout: int = 5) -> str:
    """
    Check the target once before load starts.

    Paths are tried in order and the first one answering ``200`` wins,
    so a profile can prefer a health endpoint and fall back to a page.

    Returns:
        The path that answered.

    Raises:
        SetupFailure: If no path answered ``200``.  This is the only
            per-run fatal error; it aborts the whole run.
    """
    last_problem = "no probe paths configured"
    for path in paths:
        try:
            response = requests.get(f"{base_url}{path}", timeout=timeout)
        except requests.RequestException as exc:
            last_problem = f"{path}: {exc.__class__.__name__}"
            logger.warning("Probe %s%s failed: %s", base_url, path, exc)
            continue
        if response.status_code == 200:
            logger.info("Target %s reachable via %s", base_url, path)
            return path
        last_problem = f"{path} returned {response.status_code}"
        logger.warning("Probe %s%s returned %s", base_url, path, response.status_code)
    raise SetupFailure(base_url, last_problem)
