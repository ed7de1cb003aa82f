from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
import tempfile
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "PDF Splitter API"
    SERVICE_NAME: str = "pdf-splitter-api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 3000

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "*"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # File Upload
    # ==========================================
    MAX_UPLOAD_SIZE: int = 52428800  # 50MB
    MAX_RANGES_PER_REQUEST: int = 1000

    # ==========================================
    # Split Jobs
    # ==========================================
    OUTPUT_ROOT: str = ""  # Empty means <system temp>/pdf-splitter-output
    JOB_RETENTION_MINUTES: int = 60
    JOB_SWEEP_INTERVAL_SECONDS: int = 300  # 0 disables the background sweeper
    ARCHIVE_FILENAME: str = "split_submissions.zip"
    ARCHIVE_CHUNK_SIZE: int = 65536  # 64KB
    ARCHIVE_COMPRESSION_LEVEL: int = 9

    # ==========================================
    # Object Storage (Cloudflare R2 / any S3-compatible store)
    # ==========================================
    STORAGE_ENABLED: bool = True
    R2_ACCOUNT_ID: str = ""
    S3_ENDPOINT_URL: str = ""  # Overrides the endpoint derived from R2_ACCOUNT_ID
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "auto"
    S3_BUCKET_NAME: str = ""
    STORAGE_PUBLIC_URL: str = ""
    STORAGE_MAX_RETRIES: int = 3

    @property
    def storage_endpoint_url(self) -> Optional[str]:
        """Endpoint of the S3 API (explicit URL wins over the R2 account endpoint)"""
        if self.S3_ENDPOINT_URL:
            return self.S3_ENDPOINT_URL
        if self.R2_ACCOUNT_ID:
            return f"https://{self.R2_ACCOUNT_ID}.r2.cloudflarestorage.com"
        return None

    def storage_config_errors(self) -> List[str]:
        """Names of the storage settings that are missing"""
        errors = []
        if not self.storage_endpoint_url:
            errors.append("R2_ACCOUNT_ID (or S3_ENDPOINT_URL) is not set")
        if not self.AWS_ACCESS_KEY_ID:
            errors.append("AWS_ACCESS_KEY_ID is not set")
        if not self.AWS_SECRET_ACCESS_KEY:
            errors.append("AWS_SECRET_ACCESS_KEY is not set")
        if not self.S3_BUCKET_NAME:
            errors.append("S3_BUCKET_NAME is not set")
        if not self.STORAGE_PUBLIC_URL:
            errors.append("STORAGE_PUBLIC_URL is not set")
        return errors

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def OUTPUT_DIR(self) -> Path:
        if self.OUTPUT_ROOT:
            return Path(self.OUTPUT_ROOT)
        return Path(tempfile.gettempdir()) / "pdf-splitter-output"

    @property
    def JOB_RETENTION_SECONDS(self) -> int:
        return self.JOB_RETENTION_MINUTES * 60


# Create settings instance
settings = Settings()
