"""Application configuration from environment variables."""

import json
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_MIRROR_URLS = [
    "https://www.weather.gov.sg/files/rainarea/50km/v2/dpsri_70km_{slot}0000dBR.dpsri.png",
    "https://www.nea.gov.sg/docs/default-source/rain-area/dpsri_70km_{slot}0000dBR.dpsri.png",
]

DEFAULT_RETRY_STATUS_CODES = [302, 404, 408, 413, 429, 500, 502, 503, 504, 521, 522, 524]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Upstream mirrors
    mirror_urls: Annotated[list[str], NoDecode] = Field(
        default=DEFAULT_MIRROR_URLS,
        description="Radar image URL templates containing a {slot} placeholder, in preference order",
    )
    user_agent: str = Field(
        default="rainarea/0.1",
        description="User-Agent sent to upstream mirrors",
    )
    attempt_timeout: float = Field(
        default=2.0, gt=0, description="Hard timeout for a single fetch attempt (seconds)"
    )
    retry_delay: float = Field(
        default=0.5, ge=0, description="Delay between retries of the same mirror (seconds)"
    )
    retry_status_codes: Annotated[list[int], NoDecode] = Field(
        default=DEFAULT_RETRY_STATUS_CODES,
        description="HTTP statuses treated as transient and retried",
    )
    explicit_retries: int = Field(
        default=2, ge=0, description="Retries per mirror when an explicit slot is requested"
    )

    # Current slot resolution
    current_slot_timeout: float = Field(
        default=5.0, gt=0, description="Budget for the current slot before falling back (seconds)"
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Overall budget for a current-slot request (seconds)"
    )
    fallback_steps: int = Field(
        default=12, ge=0, description="Number of 5-minute slots to walk back when current fails"
    )

    # Caches
    snapshot_cache_size: int = Field(
        default=288, ge=1, description="Decoded snapshots kept in memory (slots)"
    )
    byte_cache_size: int = Field(
        default=64, ge=0, description="Last-known-good image bodies kept per URL"
    )

    # Static input
    coverage_mask_path: str | None = Field(
        default=None,
        description="JSON file with the per-row column indices of the region of interest",
    )

    # Application
    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"],
        description="Allowed CORS origins (comma-separated or JSON array)",
    )

    @field_validator("mirror_urls", "cors_origins", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str] | None) -> list[str] | None:
        """Parse a list from a JSON array, a comma-separated string or a list."""
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("retry_status_codes", mode="before")
    @classmethod
    def parse_status_codes(cls, v: str | list[int] | None) -> list[int] | None:
        """Parse status codes from a JSON array, a comma-separated string or a list."""
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [int(code) for code in v.split(",") if code.strip()]
        return v

    @field_validator("mirror_urls")
    @classmethod
    def validate_mirror_urls(cls, v: list[str]) -> list[str]:
        """Every mirror template must contain the {slot} placeholder."""
        if not v:
            raise ValueError("at least one mirror URL is required")
        for url in v:
            if "{slot}" not in url:
                raise ValueError(f"mirror URL must contain '{{slot}}': {url}")
        return v

    @model_validator(mode="after")
    def validate_current_slot_budget(self) -> "Settings":
        """The current-slot budget must leave one full attempt per mirror."""
        needed = self.attempt_timeout * len(self.mirror_urls)
        if self.current_slot_timeout < needed:
            raise ValueError(
                f"current_slot_timeout ({self.current_slot_timeout}s) must be at least "
                f"attempt_timeout x mirrors ({needed}s)"
            )
        return self

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Log level names are upper-case in the logging module."""
        return v.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
