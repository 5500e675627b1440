"""
Unit tests for the pre-run reachability probe.
"""

from types import SimpleNamespace

import pytest
import requests

from magiclook_perf import target
from magiclook_perf.errors import SetupFailure


pytestmark = pytest.mark.unit

BASE_URL = "http://magiclook.test/magiclook"


def _fake_get(statuses):
    """Answer each URL with the mapped status; unmapped URLs refuse to connect."""
    calls = []

    def _get(url, timeout):
        calls.append(url)
        status = statuses.get(url)
        if status is None:
            raise requests.ConnectionError(f"refused: {url}")
        return SimpleNamespace(status_code=status)

    return _get, calls


def test_probe_returns_first_healthy_path(monkeypatch):
    # Arrange
    fake_get, calls = _fake_get({f"{BASE_URL}/health": 404, f"{BASE_URL}/": 200})
    monkeypatch.setattr(target.requests, "get", fake_get)

    # Act
    path = target.probe_target(BASE_URL, ("/health", "/"))

    # Assert
    assert path == "/"
    assert calls == [f"{BASE_URL}/health", f"{BASE_URL}/"]


def test_probe_raises_setup_failure_when_unreachable(monkeypatch):
    fake_get, _ = _fake_get({})
    monkeypatch.setattr(target.requests, "get", fake_get)

    with pytest.raises(SetupFailure) as excinfo:
        target.probe_target(BASE_URL, ("/login",))

    assert excinfo.value.base_url == BASE_URL
    assert "ConnectionError" in excinfo.value.reason


def test_probe_reports_last_bad_status(monkeypatch):
    fake_get, _ = _fake_get({f"{BASE_URL}/login": 503})
    monkeypatch.setattr(target.requests, "get", fake_get)

    with pytest.raises(SetupFailure, match="returned 503"):
        target.probe_target(BASE_URL)


def test_is_target_ready(monkeypatch):
    fake_get, _ = _fake_get({f"{BASE_URL}/login": 200})
    monkeypatch.setattr(target.requests, "get", fake_get)

    assert target.is_target_ready(BASE_URL)
    assert not target.is_target_ready(BASE_URL, "/health")

