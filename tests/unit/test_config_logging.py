import pytest
import structlog
from structlog.testing import capture_logs

from checkin.config import Settings
from checkin.features.scheduling.domain.preferences import SchedulingPreferences
from checkin.infrastructure.observability.logging import get_logger, log_scheduling_outcome, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.MINIMUM_GAP_MINUTES == 20
        assert settings.OPTIMAL_GAP_MINUTES == 1440
        assert settings.MAX_SNOOZE_ATTEMPTS == 4
        assert settings.PATTERN_MIN_CONFIDENCE == 0.5
        assert settings.PATTERN_MAX_AGE_DAYS == 30
        assert settings.PATTERN_CACHE_TTL_SECONDS is None

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MINIMUM_GAP_MINUTES", "45")
        monkeypatch.setenv("PATTERN_CACHE_TTL_SECONDS", "600")

        settings = Settings(_env_file=None)

        assert settings.MINIMUM_GAP_MINUTES == 45
        assert settings.PATTERN_CACHE_TTL_SECONDS == 600

    def test_unread_environment_flags_are_ignored(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("DEBUG", "true")

        settings = Settings(_env_file=None)

        assert not {"environment", "debug"} & set(Settings.model_fields)
        assert not hasattr(settings, "environment")

    def test_preferences_fall_back_to_configured_gap(self):
        preferences = SchedulingPreferences.model_validate({})

        assert preferences.minimum_gap_minutes == 20
        assert preferences.optimal_gap_minutes == 1440


class TestSchedulingOutcomeLogging:
    @pytest.mark.parametrize(
        "outcome,level",
        [("scheduled", "info"), ("slots_filled", "warning"), ("fallback", "warning"), ("failed", "error")],
    )
    def test_level_follows_outcome(self, outcome, level):
        with capture_logs() as logs:
            log_scheduling_outcome("schedule_reminder", "contact-1", outcome, score=3.5)

        assert len(logs) == 1
        entry = logs[0]
        assert entry["log_level"] == level
        assert entry["event_type"] == "scheduling_decision"
        assert entry["operation"] == "schedule_reminder"
        assert entry["contact_id"] == "contact-1"
        assert entry["score"] == 3.5


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()


def test_setup_logging_configures_structlog(reset_structlog):
    setup_logging("DEBUG")

    assert structlog.is_configured()
    get_logger("checkin.test").info("Logging configured", contact_id="contact-1")
