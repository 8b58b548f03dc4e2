"""Service configuration, read from the environment (and ``.env``) via pydantic-settings."""

import warnings
from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INSECURE_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    correlation_ids_enabled: bool = True
    api_v1_prefix: str = "/api/v1"
    rate_limit_enabled: bool = True

    database_url: str = "sqlite:///./data/wholesale_sync.db"

    # Bearer tokens are issued by the platform's auth service
    secret_key: str = INSECURE_SECRET
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 240

    # Comma-separated origins, "*" only for development
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Supplier -> customer sync
    sync_edit_window_hours: int = 24
    supplier_logs_limit: int = 500
    default_reorder_point: int = 20
    default_sizes: str = "S,M,L,XL,XXL"

    @field_validator("sync_edit_window_hours", "supplier_logs_limit", "default_reorder_point")
    @classmethod
    def validate_non_negative(cls, v: int, info) -> int:
        if v < 0:
            raise ValueError(f"{info.field_name.upper()} cannot be negative")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v == INSECURE_SECRET or len(v) < 32:
            warnings.warn(
                "SECRET_KEY is the default or shorter than 32 characters.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        if not self.debug and self.secret_key == INSECURE_SECRET:
            raise ValueError("Refusing to start with DEBUG=false and the default SECRET_KEY")
        return self

    @property
    def cors_origins_list(self) -> List[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def default_sizes_list(self) -> List[str]:
        """Sizes given to a customer color cloned from a supplier color that has none."""
        return [s.strip() for s in self.default_sizes.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
