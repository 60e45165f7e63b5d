"""Application settings loaded from environment variables."""

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from tzlocal import get_localzone


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Reminder configuration. All values come from environment variables."""

    # Registry
    database_path: Path = Field(default=Path("data/reminders.db"))
    reminder_tag: str = Field(default="daily_reminder")

    # Scheduler
    scheduler_timezone: str = Field(default="")
    registry_poll_seconds: int = Field(default=30)

    # Periodic path
    periodic_interval_hours: int = Field(default=24)
    periodic_tolerance_minutes: int = Field(default=15)
    require_battery_not_low: bool = Field(default=True)
    low_battery_percent: int = Field(default=15)
    worker_max_attempts: int = Field(default=3)
    worker_backoff_seconds: int = Field(default=30)

    # Notification channel
    channel_id: str = Field(default="heart_health_reminders")
    channel_name: str = Field(default="Heart health")
    channel_description: str = Field(default="Pulse check and workout reminders")
    channel_urgency: str = Field(default="high")
    channel_light_color: str = Field(default="#FF0000")
    channel_vibration_pattern: str = Field(default="0,300,200,300")

    # Notification appearance
    app_name: str = Field(default="Pulse Reminder")
    accent_color: str = Field(default="#FF6B6B")
    notification_icon_path: str = Field(default="")
    app_icon_path: str = Field(default="")
    launch_target: str = Field(default="")
    notification_timeout_seconds: int = Field(default=10)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_vibration_pattern(self) -> list[int]:
        """Parse CHANNEL_VIBRATION_PATTERN into a list of milliseconds."""
        if not self.channel_vibration_pattern.strip():
            return []
        return [
            int(part.strip())
            for part in self.channel_vibration_pattern.split(",")
            if part.strip()
        ]

    def get_timezone(self):
        """Return the configured zone, or the system local zone when unset."""
        if self.scheduler_timezone.strip():
            return ZoneInfo(self.scheduler_timezone.strip())
        return get_localzone()


settings = Settings()
