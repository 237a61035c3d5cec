from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    database_url: str = Field(
        default="sqlite:///./voluntold_dev.db", alias="DATABASE_URL"
    )

    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algo: str = Field(default="HS256", alias="JWT_ALGO")
    access_min: int = Field(default=60 * 12, alias="ACCESS_MIN", ge=1)
    portal_session_min: int = Field(default=60, alias="PORTAL_SESSION_MIN", ge=1)

    site_url: str = Field(default="http://localhost:3000", alias="SITE_URL")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        alias="CORS_ORIGINS",
    )

    smtp_host: str = Field(default="localhost", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_starttls: bool = Field(default=True, alias="SMTP_STARTTLS")
    smtp_timeout: int = Field(default=20, alias="SMTP_TIMEOUT")
    mail_from: str = Field(default="Voluntold <noreply@voluntold.net>", alias="MAIL_FROM")
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")

    member_token_ttl_minutes: int = Field(
        default=120, alias="MEMBER_TOKEN_TTL_MINUTES", ge=1
    )
    password_token_ttl_hours: int = Field(
        default=24, alias="PASSWORD_TOKEN_TTL_HOURS", ge=1
    )
    signup_token_ttl_days: int = Field(default=30, alias="SIGNUP_TOKEN_TTL_DAYS", ge=1)
    poll_token_ttl_days: int = Field(default=90, alias="POLL_TOKEN_TTL_DAYS", ge=1)
    password_min_length: int = Field(default=8, alias="PASSWORD_MIN_LENGTH", ge=1)

    # Outbound provider limit for bulk sends, in `limits` notation.
    email_rate_limit: str = Field(default="5 per 6 seconds", alias="EMAIL_RATE_LIMIT")
    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore
