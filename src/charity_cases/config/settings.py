"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    auto_closure_grace_period_hours: NonNegativeFloat = Field(
        default=24.0,
        validation_alias="AUTO_CLOSURE_GRACE_PERIOD_HOURS",
    )
    scheduler_interval_seconds: PositiveFloat = Field(
        default=86_400.0,
        validation_alias="SCHEDULER_INTERVAL_SECONDS",
    )
    notification_rules_cache_ttl_seconds: NonNegativeFloat = Field(
        default=60.0,
        validation_alias="NOTIFICATION_RULES_CACHE_TTL_SECONDS",
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
