"""Upload ingestion: validation, unique filenames, sidecar and thumbnail creation."""
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterable, List, Tuple

from config import GallerySettings
from errors import DecodeError, InvalidInput, IOFailure
from metadata_store import MetadataStore
from models import PhotoRecord
from photo_time import PhotoTimeExtractor
from scanner import is_image_file
from thumbnails import ThumbnailManager

logger = logging.getLogger(__name__)

# Accepted declared content types and the extension each implies
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}
DEFAULT_UPLOADER = "Anonymous"
COPY_CHUNK = 1024 * 1024


def is_valid_content_type(content_type: str) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES


def sanitize_filename(original: str, content_type: str) -> str:
    """
    Basename of a client-supplied filename.

    Directory parts from either separator are dropped. A name without a
    recognized image extension gets the one implied by content_type, so the
    stored file shows up in the catalog.
    """
    name = (original or "").replace("\x00", "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if not name.strip("."):
        name = "upload"
    if not is_image_file(name):
        name += ALLOWED_CONTENT_TYPES.get(content_type, ".jpg")
    return name


@dataclass
class UploadedFile:
    """One file from an upload request."""
    stream: BinaryIO
    filename: str
    content_type: str


class PhotoUploader:
    """Stores uploaded photos and creates their sidecar and thumbnail."""

    def __init__(
        self,
        settings: GallerySettings,
        store: MetadataStore,
        thumbnails: ThumbnailManager,
        extractor: PhotoTimeExtractor,
    ):
        self.upload_dir = Path(settings.upload_dir)
        self.store = store
        self.thumbnails = thumbnails
        self.extractor = extractor

    def reserve_filename(self, filename: str) -> Tuple[str, int]:
        """
        Claim filename, or the first free <stem>_<N><ext> after it.

        The file is created with O_EXCL, so concurrent uploads can never be
        handed the same name. Returns the name and an open write descriptor.
        """
        stem, ext = os.path.splitext(filename)
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
        candidate = filename
        counter = 0
        while True:
            path = self.upload_dir / candidate
            try:
                return candidate, os.open(path, flags, 0o644)
            except FileExistsError:
                counter += 1
                candidate = f"{stem}_{counter}{ext}"
            except OSError as e:
                raise IOFailure(f"Cannot create {candidate}: {e}", path) from e

    def save_photo(self, upload: UploadedFile, uploader_name: str, event_name: str) -> PhotoRecord:
        """
        Store one upload. Raises InvalidInput before touching storage when the
        content type is not allowed, and IOFailure when the file cannot be written.
        A thumbnail failure is logged and does not fail the upload.
        """
        if not is_valid_content_type(upload.content_type):
            raise InvalidInput(f"Invalid image type {upload.content_type!r} for {upload.filename!r}")

        filename, fd = self.reserve_filename(sanitize_filename(upload.filename, upload.content_type))
        path = self.upload_dir / filename
        try:
            with os.fdopen(fd, "wb") as dst:
                shutil.copyfileobj(upload.stream, dst, COPY_CHUNK)
        except OSError as e:
            path.unlink(missing_ok=True)
            raise IOFailure(f"Failed to write {filename}: {e}", path) from e

        record = PhotoRecord.for_file(
            filename,
            upload_time=datetime.now().astimezone(),
            uploader_name=uploader_name,
            event_name=event_name,
            photo_time=self.extractor.extract(path),
        )
        self.store.save(record)

        # Overwrite unconditionally: a stale thumbnail may remain from an earlier file of this name
        try:
            self.thumbnails.generate(path, self.thumbnails.thumbnail_path(filename))
        except (DecodeError, IOFailure) as e:
            logger.warning("Failed to generate thumbnail for %s: %s", filename, e)

        logger.info("Saved photo %s", filename)
        return record

    def save_all(self, files: Iterable[UploadedFile], uploader_name: str, event_name: str) -> List[PhotoRecord]:
        """
        Store a batch of uploads. Each file succeeds or fails on its own;
        failures are logged and left out of the result.
        """
        files = list(files)
        if not files:
            raise InvalidInput("No files uploaded")

        uploader = (uploader_name or "").strip() or DEFAULT_UPLOADER
        event = (event_name or "").strip()

        saved = []
        for upload in files:
            try:
                saved.append(self.save_photo(upload, uploader, event))
            except (InvalidInput, IOFailure) as e:
                logger.warning("Failed to save photo %s: %s", upload.filename, e)
        return saved
