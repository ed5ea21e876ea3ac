from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Environment-backed settings. Field names map to upper-case env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    database_url: str = "sqlite+aiosqlite:///./interview.db"
    redis_url: str = "redis://localhost:6379/0"
    assessment_cache_ttl: int = 3600

    gemini_api_key: Optional[str] = None
    generation_model: str = "gemini-2.0-flash"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_user: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("smtp_user", "SMTP_USER", "GMAIL_USER")
    )
    smtp_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("smtp_password", "SMTP_PASSWORD", "GMAIL_APP_PASSWORD"),
    )
    email_from: Optional[str] = None

    app_url: str = "http://localhost:3000"
    # Defaults to app_url
    frontend_url: Optional[str] = None
    auth_subject_header: str = "X-User-Id"

    vapi_assistant_id: Optional[str] = None
    vapi_voice: str = "jennifer-playht"
    vapi_model_provider: str = "google"
    vapi_model: str = "gemini-1.5-flash"

    log_level: str = "INFO"

    seed_subject_id: Optional[str] = None
    seed_email: Optional[str] = None
    seed_industry: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _default_frontend_url(self) -> "Settings":
        if not self.frontend_url:
            # frozen model, so bypass __setattr__
            object.__setattr__(self, "frontend_url", self.app_url)
        return self


def load_settings() -> Settings:
    return Settings()
