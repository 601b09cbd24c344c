"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Git Reporter configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/git_reporter.db"))

    # Scheduler
    scheduler_timezone: str = Field(default="Europe/Paris")
    max_active_schedules: int = Field(default=10)

    # Report pipeline
    default_lookback_hours: int = Field(default=24)
    external_call_timeout: float = Field(default=30.0)
    enrichment_concurrency: int = Field(default=5)
    max_commits_per_report: int = Field(default=100)
    report_date_format: str = Field(default="%Y-%m-%d")

    # GitHub
    github_token: str = Field(default="")

    # Email (SMTP)
    smtp_host: str = Field(default="smtp.gmail.com")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_use_tls: bool = Field(default=True)
    email_from: str = Field(default="")
    email_mock: bool = Field(default=False)

    # WhatsApp (Twilio)
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_whatsapp_number: str = Field(default="")

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

    @property
    def email_configured(self) -> bool:
        """True when SMTP credentials are present (or mock mode is on)."""
        return self.email_mock or bool(self.smtp_username and self.smtp_password)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_whatsapp_number
        )


settings = Settings()
