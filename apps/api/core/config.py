"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite:///./gymcontent.db for local work).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="gym_content")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # JWT Authentication - REQUIRED for token signing
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
    # Gym sessions are PIN based and shared per front desk, keep them short-ish.
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=12 * 60, ge=5)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)
    EXPOSE_API_DOCS: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # External API Configuration (object store, record store retries)
    EXTERNAL_API_TIMEOUT: int = Field(default=30)
    EXTERNAL_API_RETRY_ATTEMPTS: int = Field(default=3, ge=1)

    # Object storage for uploaded content
    # "local" writes under STORAGE_LOCAL_ROOT, "http" talks to a REST object API.
    STORAGE_BACKEND: str = Field(default="local")
    STORAGE_LOCAL_ROOT: str = Field(default="./uploads")
    STORAGE_BUCKET: str = Field(default="assignment-content")
    STORAGE_BASE_URL: Optional[str] = Field(default=None)  # e.g. https://xyz.example.co/storage/v1
    STORAGE_API_KEY: Optional[str] = Field(default=None)
    STORAGE_PUBLIC_BASE_URL: str = Field(default="http://localhost:8000/uploads")

    # Max number of files uploaded concurrently for one format batch.
    UPLOAD_MAX_PARALLEL: int = Field(default=4, ge=1, le=16)
    UPLOAD_MAX_FILE_BYTES: int = Field(default=100 * 1024 * 1024)  # 100MB per file

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    # e.g., "https://content.capitalgym.com,https://admin.capitalgym.com"
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.1)


# Global settings instance
settings = Settings()
