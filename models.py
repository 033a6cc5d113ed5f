"""Data models for the photo gallery."""
import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Sidecar value for an unknown photo time
ZERO_TIME = "0001-01-01T00:00:00Z"
UPLOADS_URL_PREFIX = "/uploads/"

# datetime only keeps microseconds; sidecars may carry nanoseconds
_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PhotoRecord(BaseModel):
    """Catalog entry for one uploaded file, persisted as a JSON sidecar."""

    model_config = ConfigDict(populate_by_name=True)

    storage_path: str = Field(alias="path", description="Public path, /uploads/<filename>")
    filename: str = Field(alias="name")
    uploader_name: str = Field(default="Unknown", alias="uploader")
    event_name: str = Field(default="", alias="event")
    upload_time: datetime = Field(alias="date")
    photo_time: Optional[datetime] = Field(default=None, alias="photo_time")

    @classmethod
    def for_file(
        cls,
        filename: str,
        upload_time: datetime,
        uploader_name: str = "Unknown",
        event_name: str = "",
        photo_time: Optional[datetime] = None,
    ) -> "PhotoRecord":
        """Build a record whose storage path is derived from the filename."""
        return cls(
            storage_path=UPLOADS_URL_PREFIX + filename,
            filename=filename,
            uploader_name=uploader_name,
            event_name=event_name,
            upload_time=upload_time,
            photo_time=photo_time,
        )

    @field_validator("upload_time", mode="before")
    @classmethod
    def _trim_upload_time(cls, v):
        if isinstance(v, str):
            return _EXCESS_FRACTION.sub(r"\1", v)
        return v

    @field_validator("photo_time", mode="before")
    @classmethod
    def _parse_photo_time(cls, v):
        if isinstance(v, str):
            if not v or v.startswith("0001-01-01"):
                return None
            return _EXCESS_FRACTION.sub(r"\1", v)
        return v

    @field_validator("upload_time", "photo_time")
    @classmethod
    def _ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_aware(v) if v is not None else None

    @field_serializer("upload_time")
    def _serialize_upload_time(self, value: datetime) -> str:
        return value.isoformat()

    @field_serializer("photo_time")
    def _serialize_photo_time(self, value: Optional[datetime]) -> str:
        return value.isoformat() if value is not None else ZERO_TIME

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
