"""Settings for the marketplace relay and ratings backend."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    # Presence store backing connection
    redis_url: str = _env_field("redis://127.0.0.1:6379", "REDIS_URL")
    redis_username: Optional[str] = _env_field(None, "REDIS_USERNAME")
    redis_password: Optional[str] = _env_field(None, "REDIS_PASSWORD")
    redis_fallback_url: str = _env_field("redis://127.0.0.1:6379", "REDIS_FALLBACK_URL")
    redis_max_retries: int = _env_field(5, "REDIS_MAX_RETRIES")
    redis_fallback_max_retries: int = _env_field(2, "REDIS_FALLBACK_MAX_RETRIES")
    redis_retry_delay_ms: int = _env_field(50, "REDIS_RETRY_DELAY_MS")
    redis_max_delay_ms: int = _env_field(1000, "REDIS_MAX_DELAY_MS")
    # Bindings left behind by a crashed process expire after this many seconds
    presence_ttl_seconds: int = _env_field(86400, "PRESENCE_TTL_SECONDS")

    relay_auth_required: bool = _env_field(False, "RELAY_AUTH_REQUIRED")

    # Rating ledger
    rating_ledger_url: Optional[str] = _env_field(None, "RATING_LEDGER_URL")
    rating_ledger_timeout_seconds: float = _env_field(5.0, "RATING_LEDGER_TIMEOUT_SECONDS")
    rating_verified_weight: float = _env_field(2.0, "RATING_VERIFIED_WEIGHT")
    rating_unverified_weight: float = _env_field(1.0, "RATING_UNVERIFIED_WEIGHT")
    rating_page_size: int = _env_field(50, "RATING_PAGE_SIZE")

    port: int = _env_field(5000, "PORT")
    secret_key: str = _env_field("change-me", "SECRET_KEY")
    access_ttl_minutes: int = _env_field(60, "ACCESS_TTL_MINUTES")
    cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_metrics_public: bool = _env_field(False, "OBS_METRICS_PUBLIC")
    obs_admin_token: Optional[str] = _env_field(None, "OBS_ADMIN_TOKEN")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    service_name: str = _env_field("marketplace-relay", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment helpers
    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development")

    @field_validator("cors_allow_origins", mode="before")
    def _split_cors(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple, set)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        return ()

    @field_validator("redis_username", "redis_password", mode="before")
    def _blank_as_missing(cls, value):  # type: ignore[override]
        # Credentials only count when explicitly non-empty
        if value is None:
            return None
        text = str(value)
        return text if text.strip() else None


def _normalise_level(level: str) -> str:
    return level.upper()


settings = Settings()
settings.obs_log_level = _normalise_level(settings.obs_log_level)
