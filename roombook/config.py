"""Application configuration settings.

``Settings`` loads runtime configuration from environment variables with
``pydantic-settings``: logging, SMTP delivery for best-effort emails,
reminder lead time and booking limits.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration values loaded from environment variables.

    Environment variable names map to fields by alias. Email delivery stays
    disabled until ``EMAIL_USER`` is set.
    """

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    app_name: str = Field(default="Room Booking Service", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # SMTP
    email_host: str = Field(default="localhost", alias="EMAIL_HOST")
    email_port: int = Field(default=587, alias="EMAIL_PORT")
    email_user: str = Field(default="", alias="EMAIL_USER")
    email_password: str = Field(default="", alias="EMAIL_PASSWORD")
    email_from: str = Field(default="Room Booking", alias="EMAIL_FROM")

    reminder_lead_minutes: int = Field(
        default=30,
        alias="REMINDER_LEAD_MINUTES",
        description="How long before a meeting starts its reminder goes out.",
    )
    max_attendees: int = Field(default=50, alias="MAX_ATTENDEES")
    seed_demo_data: bool = Field(default=False, alias="SEED_DEMO_DATA")

    @property
    def email_enabled(self) -> bool:
        return bool(self.email_user)


settings = Settings()
