from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./points_ledger.db"
    sql_echo: bool = False

    # Points accrual
    # point_value: currency spent per base point earned
    point_value: Decimal = Decimal("0.25")
    # promotion_rate_scale: converts a promotion rate into points per currency unit
    promotion_rate_scale: int = 100

    # Transaction records
    note_max_length: int = 255

    # Tracing
    tracing_enabled: bool = True
    # Comma-separated URL patterns skipped by the FastAPI instrumentation
    tracing_excluded_urls: str = "/healthz"

    @field_validator("point_value")
    @classmethod
    def _require_positive_point_value(cls, value: Decimal) -> Decimal:
        if value <= Decimal("0"):
            raise ValueError("point_value must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
