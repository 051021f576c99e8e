"""Pipeline configuration loaded from environment variables.

Triage thresholds and note formatting. Uses pydantic-settings for
validation and .env file support.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_DUE_SOON_DAYS = 3
_DEFAULT_STALE_DAYS = 14


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Triage thresholds
    # A next step due within this many days is "due soon"
    triage_due_soon_days: int = _DEFAULT_DUE_SOON_DAYS
    # An active application untouched for this many whole days is "stale"
    triage_stale_days: int = _DEFAULT_STALE_DAYS

    # Stage-change notes are prefixed with the transition date in this format
    note_date_format: str = "%Y-%m-%d"

    # Application
    environment: str = "development"

    @model_validator(mode="after")
    def check_thresholds(self) -> "Settings":
        """Reject thresholds that would make every application need action.

        Raises:
            ValueError: If either triage window is not a positive number of days.
        """
        if self.triage_due_soon_days < 1:
            raise ValueError("TRIAGE_DUE_SOON_DAYS must be at least 1")
        if self.triage_stale_days < 1:
            raise ValueError("TRIAGE_STALE_DAYS must be at least 1")
        return self


settings = Settings()
