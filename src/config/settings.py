"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without a database or object storage.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "VidShare API"
    api_version: str = "v1"

    # Token signing
    jwt_secret: str = Field(
        default="",
        description="Secret used to sign bearer tokens. Must be set before startup."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm for bearer tokens"
    )
    jwt_expiry_hours: int = Field(
        default=24,
        description="Token lifetime in hours. 0 issues tokens without an expiry claim."
    )

    # MongoDB Configuration
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    mongo_database: str = Field(
        default="vidshare",
        description="MongoDB database name"
    )
    mongo_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real MongoDB. Enables local dev without DB."
    )

    # R2/S3 Storage Configuration
    r2_account_id: str = Field(
        default="",
        description="Cloudflare account ID for R2"
    )
    r2_access_key_id: str = Field(
        default="",
        description="R2 access key ID"
    )
    r2_secret_access_key: str = Field(
        default="",
        description="R2 secret access key"
    )
    r2_bucket_name: str = Field(
        default="vidshare-media",
        description="Bucket name for videos and profile files"
    )
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="R2 endpoint URL. Auto-constructed from account_id if not provided."
    )
    r2_public_base_url: Optional[str] = Field(
        default=None,
        description="Public base URL objects are served from (custom domain or r2.dev). "
                    "Falls back to path-style endpoint URLs."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real R2. Enables local dev without object storage."
    )

    # Upload limits
    max_video_size_mb: int = Field(
        default=500,
        description="Maximum video upload size in MB"
    )
    max_file_size_mb: int = Field(
        default=500,
        description="Maximum size in MB for non-video files (avatars)"
    )
    upload_timeout_seconds: float = Field(
        default=300.0,
        description="Upper bound on a single transfer to object storage"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """
        Construct R2 endpoint URL from account ID.

        R2 endpoints follow the pattern: https://{account_id}.r2.cloudflarestorage.com
        This is S3-compatible but uses Cloudflare's network.
        """
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def max_video_size_bytes(self) -> int:
        return self.max_video_size_mb * 1024 * 1024

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # The signing secret is always required
        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        if not self.mongo_mock_mode and not self.mongo_uri:
            missing.append("MONGO_URI")

        # R2 only required if not in mock mode
        if not self.r2_mock_mode:
            if not self.r2_account_id and not self.r2_endpoint_url:
                missing.append("R2_ACCOUNT_ID or R2_ENDPOINT_URL")
            if not self.r2_access_key_id:
                missing.append("R2_ACCESS_KEY_ID")
            if not self.r2_secret_access_key:
                missing.append("R2_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    This is safe because settings don't change during runtime.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
