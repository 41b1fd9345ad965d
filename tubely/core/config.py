"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Tubely API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    PUBLIC_BASE_URL: str = "http://localhost:8091"

    # Database - REQUIRED
    DATABASE_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list[str] = []

    # Storage Configuration
    # STORAGE_BACKEND: local, s3, minio
    STORAGE_BACKEND: str = "s3"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True

    # Local working areas
    UPLOAD_TMP_DIR: str = "/tmp"
    ASSETS_ROOT: str = "./assets"

    # Media tooling
    FFPROBE_PATH: str = "ffprobe"
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_TIMEOUT_SECONDS: float = 30.0
    FFMPEG_TIMEOUT_SECONDS: float = 300.0

    # Upload limits
    MAX_VIDEO_UPLOAD_BYTES: int = 1 << 30  # 1 GiB
    MAX_THUMBNAIL_UPLOAD_BYTES: int = 10 << 20  # 10 MiB

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    OTLP_ENDPOINT: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
