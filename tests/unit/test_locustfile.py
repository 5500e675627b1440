"""
Unit tests for the Locust entrypoint's event listeners.
"""

from types import SimpleNamespace
import pytest

from magiclook_perf import locustfile
from magiclook_perf.config import get_config
from magiclook_perf.errors import SetupFailure
from magiclook_perf.outcomes import Classification, Outcome
from magiclook_perf.profiles import StagedShape
from magiclook_perf.run import EXIT_SETUP_FAILURE, EXIT_THRESHOLD_BREACH, get_run


pytestmark = pytest.mark.unit


class FakeEnvironment:
    def __init__(self, host=None, **options):
        self.host = host
        self.parsed_options = SimpleNamespace(
            tags=options.get("tags"),
            profile=options.get("profile", ""),
            profiles_file=options.get("profiles_file", ""),
        )
        self.user_classes = list(locustfile.TAG_TO_USER_CLASS.values())
        self.runner = None
        self.process_exit_code = None
        self.stop_timeout = options.get("stop_timeout")


@pytest.fixture(autouse=True)
def _reset_shape():
    yield
    StagedShape.profile = None


def test_every_tag_has_a_shipped_profile():
    for tag in locustfile.TAG_TO_USER_CLASS:
        options = SimpleNamespace(tags=[tag], profile="", profiles_file="")
        assert locustfile.resolve_profile(options).name == tag


def test_explicit_profile_wins_over_tag():
    options = SimpleNamespace(tags=["contention"], profile="spike", profiles_file="")

    assert locustfile.resolve_profile(options).name == "spike"


def test_several_tags_fall_back_to_configured_profile():
    options = SimpleNamespace(tags=["spike", "mixed"], profile="", profiles_file="")

    assert locustfile.resolve_profile(options).name == "smoke"


def test_tags_narrow_user_classes():
    environment = FakeEnvironment(tags=["contention"])

    locustfile._filter_user_classes_by_tag(environment)

    assert environment.user_classes == [locustfile.ConcurrentBookingUser]


def test_attach_run_shares_profile_with_shape():
    # Arrange
    environment = FakeEnvironment(host="http://staging.test/magiclook", tags=["mixed"])

    # Act
    locustfile._attach_run(environment)

    # Assert
    run = get_run(environment)
    assert run.profile.name == "mixed"
    assert run.base_url == "http://staging.test/magiclook"
    assert StagedShape.profile is run.profile


def test_attach_run_sets_a_stop_timeout():
    # Arrange
    environment = FakeEnvironment(tags=["spike"])

    # Act
    locustfile._attach_run(environment)

    # Assert
    assert environment.stop_timeout == get_config().STOP_TIMEOUT
    assert environment.stop_timeout > 0


def test_attach_run_keeps_an_explicit_stop_timeout():
    environment = FakeEnvironment(tags=["spike"], stop_timeout=5)

    locustfile._attach_run(environment)

    assert environment.stop_timeout == 5


def test_unknown_profile_exits_with_setup_code():
    environment = FakeEnvironment(profile="does-not-exist")

    with pytest.raises(SystemExit) as excinfo:
        locustfile._attach_run(environment)

    assert excinfo.value.code == EXIT_SETUP_FAILURE


def test_unreachable_target_marks_setup_failure(monkeypatch):
    # Arrange
    environment = FakeEnvironment(tags=["smoke"])
    locustfile._attach_run(environment)

    def refuse(base_url, paths, timeout):
        raise SetupFailure(base_url, "connection refused")

    monkeypatch.setattr(locustfile, "probe_target", refuse)

    # Act
    locustfile._probe_target(environment)
    locustfile._evaluate_thresholds(environment)

    # Assert
    assert get_run(environment).setup_failed
    assert environment.process_exit_code == EXIT_SETUP_FAILURE


def test_quitting_sets_threshold_exit_code():
    # Arrange
    environment = FakeEnvironment(tags=["smoke"])
    locustfile._attach_run(environment)
    run = get_run(environment)
    run.recorder.record(Outcome("home", 500, 1.0, Classification.UNEXPECTED_ERROR))

    # Act
    locustfile._evaluate_thresholds(environment)

    # Assert
    assert environment.process_exit_code == EXIT_THRESHOLD_BREACH

