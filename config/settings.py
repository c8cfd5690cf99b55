"""Configuration management using pydantic-settings."""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Keeper settings loaded from PROMISE_KEEPER_* environment variables."""

    # Background refresh (seconds), used when keep_fresh() gets no interval
    keep_fresh_interval_seconds: float = Field(default=1800.0, gt=0, allow_inf_nan=False)

    # When true, a purged in-flight invocation no longer clears the keeper
    # again once it completes; stale completions are only discarded.
    isolate_purged_invocations: bool = False

    model_config = SettingsConfigDict(
        env_prefix="PROMISE_KEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
