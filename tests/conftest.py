"""
Shared pytest fixtures for the MagicLook load suite.

Unit tests never start Locust or open a socket.  Instead they drive the
journey code through :class:`FakeClient`, a stand-in for Locust's
``HttpSession`` that answers from a routing table and keeps every call
for later assertions.

Key Concepts Demonstrated:
- Hand-written test doubles that mirror the ``catch_response`` protocol
- Factory fixtures for clients, executors and contexts
- Faker-generated accounts so tests never depend on seeded data
"""

from __future__ import annotations

# Locust monkey-patches the stdlib via gevent on import; do it before any
# module (e.g. requests/urllib3) imports ssl, or collection recurses.
from gevent import monkey

monkey.patch_all()

import os
from dataclasses import dataclass, field
from typing import Any

import pytest
from faker import Faker

# Select the test configuration before the package reads it.
os.environ["PERF_ENV"] = "testing"

from magiclook_perf.helpers import Credentials
from magiclook_perf.journey import JourneyExecutor, VirtualUserContext
from magiclook_perf.metrics import OutcomeRecorder


fake = Faker()


# -----------------------------------------------------------------------------
# Locust HttpSession stand-ins
# -----------------------------------------------------------------------------

class FakeResponse:
    """
    Response object usable as ``with client.request(...) as response``.

    Records whether the code under test marked it as a success or a
    failure, which is what Locust's statistics would see.
    """

    def __init__(self, status_code: int = 200, text: str = "", cookies: dict[str, str] | None = None):
        self.status_code = status_code
        self.text = text
        self.cookies = dict(cookies or {})
        self.marked: str | None = None
        self.failure_message: str | None = None

    def success(self) -> None:
        self.marked = "success"

    def failure(self, message: str) -> None:
        self.marked = "failure"
        self.failure_message = message

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info: Any) -> bool:
        return False


@dataclass
class FakeCall:
    method: str
    url: str
    kwargs: dict[str, Any]
    response: FakeResponse


class FakeCookieJar(dict):
    cleared = 0

    def clear(self) -> None:
        super().clear()
        self.cleared += 1


@dataclass
class FakeClient:
    """
    Minimal ``HttpSession`` double.

    ``routes`` maps ``(METHOD, url)`` to a ``(status, body)`` tuple or a
    ``FakeResponse`` factory; unknown routes answer ``200`` with an empty
    body.
    """

    routes: dict[tuple[str, str], Any] = field(default_factory=dict)
    calls: list[FakeCall] = field(default_factory=list)
    cookies: FakeCookieJar = field(default_factory=FakeCookieJar)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        route = self.routes.get((method.upper(), url), (200, ""))
        response = route() if callable(route) else FakeResponse(*route)
        self.calls.append(FakeCall(method.upper(), url, kwargs, response))
        return response

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def urls(self) -> list[str]:
        return [call.url for call in self.calls]


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def fake_response() -> type[FakeResponse]:
    """The response class, for routes that need cookies or a custom body."""
    return FakeResponse


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def recorder() -> OutcomeRecorder:
    return OutcomeRecorder()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects the think-time pauses an executor asked for."""
    return []


@pytest.fixture
def executor(fake_client, recorder, sleeps) -> JourneyExecutor:
    return JourneyExecutor(fake_client, recorder, sleep=sleeps.append)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(fake.user_name(), fake.password(length=12))


@pytest.fixture
def authenticated_context(credentials) -> VirtualUserContext:
    """A context that has already logged in."""
    return VirtualUserContext(credentials=credentials, session_token=fake.sha1())
