"""
Gallery configuration using Pydantic Settings.
Every component receives a GallerySettings instance in its constructor.
"""
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR = Path(__file__).resolve().parent


class GallerySettings(BaseSettings):
    """Gallery settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    # Application
    site_title: str = Field(default="Photo Gallery")
    gallery_password: str = Field(min_length=1, description="Shared password for all guests")
    session_secret: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    log_level: str = Field(default="INFO")

    # Storage
    upload_dir: Path = Field(default=Path("./uploads"))
    metadata_dir: Path = Field(default=Path("./metadata"))
    max_upload_bytes: int = Field(default=32 << 20, description="Request body limit for /upload")

    # Presentation assets, written on first run
    templates_dir: Path = Field(default=APP_DIR / "templates")
    static_dir: Path = Field(default=APP_DIR / "static")

    # Thumbnails
    thumbnail_size: int = Field(default=300, ge=1, description="Longest side in pixels")
    thumbnail_quality: int = Field(default=80, ge=1, le=100, description="JPEG quality")

    # External metadata tool
    exiftool_path: str = Field(default="exiftool")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> str:
        if v is None or v == "":
            return "INFO"
        return str(v).upper()

    @property
    def thumbnail_dir(self) -> Path:
        return self.metadata_dir / "thumbnails"


@lru_cache()
def get_settings() -> GallerySettings:
    """Get cached settings instance."""
    return GallerySettings()
