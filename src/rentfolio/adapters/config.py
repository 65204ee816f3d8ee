# src/rentfolio/adapters/config.py
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    # App & logging
    ENV: str = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")

    # persistence
    STORE_URI: str = Field(default="sqlite:///rentfolio.db")

    # -----------------------------
    # Read-through cache
    # -----------------------------
    CACHE_ENABLED: bool = Field(default=True)
    CACHE_TTL_S: float = Field(default=300.0)

    # -----------------------------
    # Dashboard / listings
    # -----------------------------
    ACTIVITY_LOG_LIMIT: int = Field(default=20)
    DEFAULT_PAGE_SIZE: int = Field(default=10)

    # Months per year a unit is expected to sit empty
    VACANCY_MONTHS_PER_YEAR: float = Field(default=1.0)

    # Write the demo analyses on startup when the store is empty
    SEED_EXAMPLES: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="RENTFOLIO_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("CACHE_TTL_S", mode="before")
    @classmethod
    def _ttl_positive(cls, v: Any) -> Any:
        f = float(v)
        if f <= 0:
            raise ValueError("CACHE_TTL_S must be > 0")
        return f

    @field_validator("ACTIVITY_LOG_LIMIT", "DEFAULT_PAGE_SIZE", mode="before")
    @classmethod
    def _count_positive(cls, v: Any) -> Any:
        n = int(v)
        if n <= 0:
            raise ValueError("must be > 0")
        return n

    @field_validator("VACANCY_MONTHS_PER_YEAR", mode="before")
    @classmethod
    def _months_in_year(cls, v: Any) -> Any:
        f = float(v)
        if not (0.0 <= f <= 12.0):
            raise ValueError("VACANCY_MONTHS_PER_YEAR must be between 0 and 12")
        return f


config = AppConfig()
