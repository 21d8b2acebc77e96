"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str

    # Blob storage for snapshots and favicons
    storage_backend: Literal["local", "s3"] = Field(
        default="local", validation_alias="STORAGE_BACKEND",
    )
    local_storage_dir: str = Field(default="data/blobs", validation_alias="LOCAL_STORAGE_DIR")
    s3_endpoint_url: str = Field(default="", validation_alias="S3_ENDPOINT_URL")
    s3_access_key_id: str = Field(default="", validation_alias="S3_ACCESS_KEY_ID")
    s3_secret_access_key: str = Field(default="", validation_alias="S3_SECRET_ACCESS_KEY")
    s3_bucket: str = Field(default="", validation_alias="S3_BUCKET")
    s3_region: str = Field(default="auto", validation_alias="S3_REGION")

    # Outbound fetches made while capturing a bookmark
    fetch_timeout: float = Field(default=10.0, gt=0, validation_alias="FETCH_TIMEOUT")

    # Password login - disabled when auth_password is empty
    auth_password: str = Field(default="", validation_alias="AUTH_PASSWORD")
    session_secret: str = Field(default="", validation_alias="SESSION_SECRET")
    session_max_age: int = Field(default=7 * 24 * 3600, validation_alias="SESSION_MAX_AGE")
    session_cookie_secure: bool = Field(default=True, validation_alias="SESSION_COOKIE_SECURE")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:8000",
        validation_alias="CORS_ORIGINS",
    )

    # Directory of static assets served for any path not handled by the API
    static_dir: str = Field(default="public", validation_alias="STATIC_DIR")

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """
        Require a session secret whenever password login is enabled.

        The session cookie is derived from the secret, so an empty secret would make
        the cookie value predictable from the password alone.
        """
        if self.auth_password and not self.session_secret:
            raise ValueError("SESSION_SECRET must be set when AUTH_PASSWORD is enabled.")
        return self

    @property
    def auth_enabled(self) -> bool:
        """Whether requests must carry a valid session cookie."""
        return bool(self.auth_password)

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
