"""Error types for the gallery catalog."""
from pathlib import Path
from typing import Optional


class GalleryError(Exception):
    """Base class for all catalog errors."""


class NotFound(GalleryError):
    """A photo or thumbnail does not exist, or an export matched nothing."""


class InvalidInput(GalleryError):
    """Rejected upload: bad content type or empty file selection."""


class DecodeError(GalleryError):
    """Image bytes could not be decoded."""


class IOFailure(GalleryError):
    """A filesystem read or write failed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class StorageSetupError(IOFailure):
    """Storage or metadata root could not be created. Fatal at startup."""


class MetadataCorrupt(GalleryError):
    """A sidecar exists but cannot be parsed."""
