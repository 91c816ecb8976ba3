import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


class Settings(BaseModel):
    QUOTES_BASE_URL: str = "https://cloud.iexapis.com/stable"
    QUOTES_API_TOKEN: str | None = None
    QUOTES_HTTP_TIMEOUT_SEC: float = Field(default=5.0, gt=0)

    QUOTE_TIMEOUT_SEC: float | None = Field(default=1.0, gt=0)
    BATCH_TIMEOUT_SEC: float | None = Field(default=1.0, gt=0)
    # disabled unless set: search may legitimately take longer
    SEARCH_TIMEOUT_SEC: float | None = Field(default=None, gt=0)

    BREAKER_REQUEST_VOLUME_THRESHOLD: int = Field(default=20, ge=1)
    BREAKER_ERROR_THRESHOLD_PCT: float = Field(default=50.0, gt=0, le=100)
    BREAKER_ROLLING_WINDOW_SEC: float = Field(default=10.0, gt=0)
    BREAKER_SLEEP_WINDOW_SEC: float = Field(default=5.0, ge=0)

    UPSTREAM_MAX_WORKERS: int = Field(default=10, ge=1)

    @field_validator("QUOTES_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        names = list(cls.model_fields)
        # unset or blank env keeps the field default
        raw = {name: _optional_env(name) for name in names}
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
