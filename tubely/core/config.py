from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Secrets(BaseSettings):
    """Secrets configuration, loaded from the environment or a secrets management service."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    jwt_secret: str = Field(default="change-me", description="Signing secret for bearer token validation.")
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Secrets":
        return cls()


class Settings(BaseSettings):
    """Centralised runtime configuration for the Tubely API."""

    model_config = SettingsConfigDict(
        env_prefix="TUBELY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Tubely API"
    environment: str = Field(default="development", description="Deployment environment label.")
    version: str = Field(default="0.1.0", description="API version for metadata and OpenAPI.")
    log_level: str = Field(default="info")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tubely.db",
        description="SQLAlchemy compatible DSN for the video record store.",
    )

    assets_root: Path = Field(
        default_factory=lambda: Path("assets"),
        description="Directory holding temporary files for in-flight uploads.",
    )
    storage_backend: Literal["local", "s3"] = Field(default="local", description="Active object store implementation.")
    local_storage_root: Path | None = Field(
        default=None,
        description="Override root for the local object store (defaults to <assets_root>/store).",
    )

    s3_bucket: Optional[str] = None
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3 endpoint, e.g. a MinIO deployment.",
    )
    public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL (CDN or bucket website) used to build durable references.",
    )

    ffprobe_bin: str = Field(default="ffprobe")
    ffmpeg_bin: str = Field(default="ffmpeg")
    subprocess_timeout_s: float = Field(default=600.0, description="Upper bound for a single ffprobe/ffmpeg run.")

    thumbnail_mode: Literal["inline", "store"] = Field(
        default="inline",
        description="inline stores thumbnails as data URLs; store uploads them to the object store.",
    )

    jwt_algorithm: str = Field(default="HS256", description="Algorithm used for JWT tokens.")
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None

    secrets: Secrets = Field(default_factory=Secrets, description="Holds sensitive configuration.")

    @property
    def environment_lower(self) -> str:
        return self.environment.lower()

    @property
    def object_store_root(self) -> Path:
        return self.local_storage_root or self.assets_root / "store"


@lru_cache()
def get_settings() -> Settings:
    load_dotenv(".env", override=False)

    _ENV_ALIAS_MAP = {
        "TUBELY_ENV": "TUBELY_ENVIRONMENT",
        "TUBELY_DB_URL": "TUBELY_DATABASE_URL",
        "TUBELY_S3_ENDPOINT": "TUBELY_S3_ENDPOINT_URL",
    }

    for source, target in _ENV_ALIAS_MAP.items():
        value = os.getenv(source)
        if value:
            os.environ[target] = value

    settings = Settings()
    secrets = Secrets.from_settings(settings)

    if settings.environment_lower == "production" and secrets.jwt_secret == "change-me":
        raise ValueError("Production environment must have a non-default JWT secret.")
    if settings.storage_backend == "s3" and not settings.s3_bucket:
        raise ValueError("The s3 storage backend requires TUBELY_S3_BUCKET.")

    settings.secrets = secrets
    return settings


__all__ = ["Settings", "Secrets", "get_settings"]
