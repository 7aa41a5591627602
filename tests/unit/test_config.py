"""Tests for Settings."""

import pytest
from checkpulse.config import Settings
from checkpulse.core.domain_types import Weekday
from checkpulse.core.exceptions import ConfigurationError


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        settings = Settings(environ={})

        assert settings.default_timezone == "America/Chicago"
        assert settings.default_week_start is Weekday.SATURDAY
        assert settings.store_timeout_seconds == 10.0
        assert settings.directory_timeout_seconds == 30.0
        assert settings.outstanding_lookback_weeks == 52
        assert settings.allow_empty_roster is False
        assert settings.log_level == "INFO"
        assert settings.slack_enabled is False

    def test_reads_values(self) -> None:
        settings = Settings(
            environ={
                "SLACK_BOT_TOKEN": "xoxb-test",  # pragma: allowlist secret
                "DEFAULT_TIMEZONE": "Europe/Berlin",
                "DEFAULT_WEEK_START": "monday",
                "STORE_TIMEOUT_SECONDS": "2.5",
                "ALLOW_EMPTY_ROSTER": "yes",
                "LOG_LEVEL": "debug",
            }
        )

        assert settings.slack_enabled is True
        assert settings.default_week_start is Weekday.MONDAY
        assert settings.store_timeout_seconds == 2.5
        assert settings.allow_empty_roster is True
        assert settings.log_level == "DEBUG"

    def test_builds_core_configs(self) -> None:
        settings = Settings(
            environ={"OUTSTANDING_LOOKBACK_WEEKS": "12", "DIRECTORY_TIMEOUT_SECONDS": "5"}
        )

        assert settings.classifier_config().outstanding_lookback_weeks == 12
        assert settings.reconciler_config().directory_timeout_seconds == 5.0
        assert settings.reconciler_config().allow_empty_snapshot is False

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("DEFAULT_TIMEZONE", "Mars/Olympus_Mons"),
            ("DEFAULT_WEEK_START", "funday"),
            ("STORE_TIMEOUT_SECONDS", "soon"),
            ("STORE_TIMEOUT_SECONDS", "0"),
            ("OUTSTANDING_LOOKBACK_WEEKS", "1.5"),
            ("OUTSTANDING_LOOKBACK_WEEKS", "-3"),
            ("ALLOW_EMPTY_ROSTER", "maybe"),
            ("LOG_LEVEL", "loud"),
        ],
    )
    def test_rejects_invalid(self, name: str, value: str) -> None:
        with pytest.raises(ConfigurationError):
            Settings(environ={name: value})
