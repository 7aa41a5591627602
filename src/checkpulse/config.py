"""Application settings loaded from environment."""

from __future__ import annotations

import os
from collections.abc import Mapping

from checkpulse.core.calendar import DEFAULT_TIMEZONE, parse_weekday, resolve_timezone
from checkpulse.core.classifier import ClassifierConfig
from checkpulse.core.domain_types import Weekday
from checkpulse.core.exceptions import ConfigurationError
from checkpulse.core.reconciler import ReconcilerConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


class Settings:
    """Application settings loaded from environment.

    Raises:
        ConfigurationError: If any variable holds an invalid value.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        """Load settings from environment variables."""
        env = os.environ if environ is None else environ

        self.database_url = env.get("DATABASE_URL", "postgresql://localhost:5432/checkpulse")
        self.slack_bot_token = env.get("SLACK_BOT_TOKEN", "")

        # Calendar defaults for organizations without their own settings
        self.default_timezone = env.get("DEFAULT_TIMEZONE", DEFAULT_TIMEZONE)
        resolve_timezone(self.default_timezone)
        self.default_week_start: Weekday = parse_weekday(
            env.get("DEFAULT_WEEK_START", "saturday")
        )

        # Collaborator timeouts
        self.store_timeout_seconds = _positive_float(env, "STORE_TIMEOUT_SECONDS", 10.0)
        self.directory_timeout_seconds = _positive_float(env, "DIRECTORY_TIMEOUT_SECONDS", 30.0)

        self.outstanding_lookback_weeks = _positive_int(env, "OUTSTANDING_LOOKBACK_WEEKS", 52)
        self.allow_empty_roster = _bool(env, "ALLOW_EMPTY_ROSTER", False)

        self.log_level = env.get("LOG_LEVEL", "INFO").upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        self.log_json = _bool(env, "LOG_JSON", False)

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_bot_token)

    def classifier_config(self) -> ClassifierConfig:
        return ClassifierConfig(
            store_timeout_seconds=self.store_timeout_seconds,
            outstanding_lookback_weeks=self.outstanding_lookback_weeks,
        )

    def reconciler_config(self) -> ReconcilerConfig:
        return ReconcilerConfig(
            store_timeout_seconds=self.store_timeout_seconds,
            directory_timeout_seconds=self.directory_timeout_seconds,
            allow_empty_snapshot=self.allow_empty_roster,
        )


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")
