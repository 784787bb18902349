"""
Environment-backed settings. Every credential has a mock default so the service
runs locally without real providers.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MOCK_JWT_SECRET = "test-secret-key-for-development-only"


class Settings(BaseSettings):
    """Settings for the contest API. Field names map to upper-case env vars."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database (SQLite file; other schemes have no driver and run in fallback mode)
    database_url: str = Field(default="sqlite:///./data/cfs.db")

    # Auth: bearer tokens issued by the identity provider, HS256-signed
    jwt_secret_key: str = Field(default=MOCK_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)

    # OAuth / wallet providers (mock values in development)
    google_client_id: Optional[str] = Field(default="test-google-client-id")
    google_client_secret: Optional[str] = Field(default="test-google-client-secret")
    walletconnect_project_id: Optional[str] = Field(default="test-walletconnect-project-id")

    # Development toggles
    mock_services: bool = Field(default=True)
    seed_demo_user: bool = Field(default=True)

    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @property
    def auth_mode(self) -> str:
        if self.mock_services or self.jwt_secret_key == MOCK_JWT_SECRET:
            return "mock"
        return "configured"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
