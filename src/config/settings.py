"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and a local .env)
with sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Missing required values are a startup failure (ConfigurationError),
never a request-time one.
"""

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised at startup when required settings are missing."""
    pass


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Physiognomy Scanner API"
    api_version: str = "v1"
    api_port: int = Field(
        default=5050,
        description="Port for the development server"
    )

    # Anthropic Configuration
    anthropic_api_key: str = Field(
        default="",
        description="Claude API key. Always required."
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for the reading"
    )
    anthropic_max_tokens: int = Field(
        default=2048,
        description="Max tokens for Claude responses. The reading is a short JSON object."
    )
    anthropic_temperature: float = Field(
        default=0.7,
        description="Temperature for Claude. Some creativity suits a fortune teller."
    )

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="",
        description="Bucket that receives scanned photos"
    )
    s3_folder: str = Field(
        default="person_image",
        description="Key prefix for scanned photos"
    )
    s3_region: str = Field(
        default="",
        description="Bucket region. Leave empty to discover it with GetBucketLocation."
    )
    aws_region: str = Field(
        default="",
        description="Fallback for s3_region"
    )
    aws_default_region: str = Field(
        default="",
        description="Fallback for s3_region when AWS_REGION is unset"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (optional)"
    )
    aws_access_key_id: str = Field(
        default="",
        description="AWS access key ID"
    )
    aws_secret_access_key: str = Field(
        default="",
        description="AWS secret access key"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of S3. Enables local dev without a bucket."
    )

    # Application Behavior
    max_image_size_mb: int = Field(
        default=15,
        description="Maximum base64 image payload in MB"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def strip_quotes(cls, value: Any) -> Any:
        """Deployment dashboards often save values as "quoted" strings."""
        if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
            return value[1:-1]
        return value

    @model_validator(mode="after")
    def resolve_region(self) -> "Settings":
        """S3_REGION, then AWS_REGION, then AWS_DEFAULT_REGION; first non-empty wins."""
        for candidate in (self.s3_region, self.aws_region, self.aws_default_region):
            if candidate and candidate.strip():
                self.s3_region = candidate.strip()
                break
        else:
            self.s3_region = ""
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # Anthropic is always required (no mock for the reading)
        if not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")

        # S3 only required if not in mock mode
        if not self.storage_mock_mode:
            if not self.s3_bucket:
                missing.append("S3_BUCKET")
            if not self.aws_access_key_id:
                missing.append("AWS_ACCESS_KEY_ID")
            if not self.aws_secret_access_key:
                missing.append("AWS_SECRET_ACCESS_KEY")

        return missing

    def ensure_valid(self) -> None:
        """Raise ConfigurationError if any required field is missing."""
        missing = self.validate_required_fields()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
