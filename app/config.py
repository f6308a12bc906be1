"""Application Configuration"""

import re
from datetime import timedelta, timezone, tzinfo
from typing import List
from zoneinfo import ZoneInfo

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Niti Billing Backend"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    BASE_URL: str = "http://localhost:8000"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    # Civil time zone for bill dates, identifier days and dashboard months.
    # Accepts an IANA name ("Asia/Bangkok") or a fixed offset ("+07:00").
    TIMEZONE: str = "+07:00"

    # Portal authentication
    PORTAL_API_URL: str = "https://portal.niti.local"
    PORTAL_JWT_SECRET: str = ""
    PORTAL_JWT_ALGORITHM: str = "HS256"

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    ALLOWED_METHODS: str = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
    ALLOWED_HEADERS: str = "*"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Push notifications
    PUSH_API_URL: str = ""
    PUSH_API_KEY: str = ""
    NOTIFICATION_BATCH_SIZE: int = 500
    NOTIFICATION_MAX_RETRIES: int = 3

    # Document store (banks, customer display names)
    DOCUMENT_STORE_URL: str = ""
    DOCUMENT_STORE_API_KEY: str = ""

    # PDF rendering service
    PDF_RENDER_URL: str = ""

    # Storage: "firebase" (bucket via S3 interoperability API) or "project" (local disk)
    UPLOAD_BACKEND: str = "project"
    UPLOAD_DIR: str = "uploads"
    FIREBASE_STORAGE_BUCKET: str = ""
    FIREBASE_HMAC_ACCESS_KEY: str = ""
    FIREBASE_HMAC_SECRET: str = ""
    FIREBASE_STORAGE_ENDPOINT: str = "https://storage.googleapis.com"

    # Identifier allocation
    ID_ALLOCATION_MAX_RETRIES: int = 3

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into a list"""
        return [origin.strip() for origin in v.split(",")]

    @field_validator("ALLOWED_METHODS")
    @classmethod
    def parse_methods(cls, v: str) -> List[str]:
        """Parse comma-separated methods into a list"""
        return [method.strip() for method in v.split(",")]

    @field_validator("UPLOAD_BACKEND")
    @classmethod
    def check_upload_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("firebase", "project"):
            raise ValueError("UPLOAD_BACKEND must be 'firebase' or 'project'")
        return v

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        _parse_timezone(v)
        return v

    @property
    def tz(self) -> tzinfo:
        """Configured civil time zone"""
        return _parse_timezone(self.TIMEZONE)

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"


_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def _parse_timezone(value: str) -> tzinfo:
    match = _OFFSET_RE.match(value.strip())
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-delta if sign == "-" else delta)
    return ZoneInfo(value.strip())


# Global settings instance
settings = Settings()
