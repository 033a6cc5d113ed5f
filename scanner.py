"""Startup reconciliation between the upload directory and its derived files."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from config import GallerySettings
from errors import DecodeError, IOFailure, StorageSetupError
from metadata_store import MetadataStore
from models import PhotoRecord
from photo_time import PhotoTimeExtractor
from thumbnails import ThumbnailManager

logger = logging.getLogger(__name__)

# Configuration
ALLOWED_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
BACKFILL_UPLOADER = "Unknown"
# Atomic writes go through ".<random>.tmp" files next to their target
TEMP_PREFIX = "."
TEMP_SUFFIX = ".tmp"


def is_image_file(name: str) -> bool:
    """True for filenames with a recognized image extension (case-insensitive)."""
    return Path(name).suffix.lower() in ALLOWED_EXTS


def iter_image_files(root: Path) -> Iterable[Path]:
    """Iterate image files directly under root, in name order."""
    for p in sorted(root.iterdir()):
        if p.is_file() and is_image_file(p.name):
            yield p


class CatalogReconciler:
    """
    Backfills missing sidecars and thumbnails and removes orphaned ones.

    Every step only looks at the current directory listing, so running the
    whole pass twice changes nothing the second time.
    """

    def __init__(
        self,
        settings: GallerySettings,
        store: MetadataStore,
        thumbnails: ThumbnailManager,
        extractor: PhotoTimeExtractor,
    ):
        self.upload_dir = Path(settings.upload_dir)
        self.metadata_dir = Path(settings.metadata_dir)
        self.thumbnail_dir = settings.thumbnail_dir
        self.store = store
        self.thumbnails = thumbnails
        self.extractor = extractor

    def ensure_directories(self) -> None:
        """Create storage, metadata and thumbnail roots. Failure is fatal."""
        for directory in (self.upload_dir, self.metadata_dir, self.thumbnail_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageSetupError(f"Cannot create directory {directory}: {e}", directory) from e

    def backfill_metadata(self) -> int:
        """Write a default sidecar for every image that has none."""
        created = 0
        for file in iter_image_files(self.upload_dir):
            if self.store.exists(file.name):
                continue
            try:
                mtime = datetime.fromtimestamp(file.stat().st_mtime).astimezone()
            except OSError as e:
                logger.warning("Failed to stat %s: %s", file.name, e)
                continue

            record = PhotoRecord.for_file(
                file.name,
                upload_time=mtime,
                uploader_name=BACKFILL_UPLOADER,
                photo_time=self.extractor.extract(file),
            )
            if self.store.save(record):
                created += 1
                logger.info("Generated metadata for existing image: %s", file.name)

        if created:
            logger.info("Metadata backfill complete: created %d metadata files", created)
        else:
            logger.info("All existing images already have metadata")
        return created

    def backfill_thumbnails(self) -> int:
        """Generate a thumbnail for every image that has none."""
        created = 0
        for file in iter_image_files(self.upload_dir):
            try:
                if self.thumbnails.ensure(file, self.thumbnails.thumbnail_path(file.name)):
                    created += 1
                    logger.info("Generated thumbnail for existing image: %s", file.name)
            except (DecodeError, IOFailure) as e:
                logger.warning("Failed to generate thumbnail for %s: %s", file.name, e)

        if created:
            logger.info("Thumbnail backfill complete: created %d thumbnails", created)
        else:
            logger.info("All existing images already have thumbnails")
        return created

    def remove_stale_temp_files(self, directory: Path) -> int:
        """
        Delete temp files left behind by an interrupted sidecar or thumbnail
        write. Only safe while nothing else writes, i.e. before serving starts.
        """
        removed = 0
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            logger.warning("Failed to read directory %s: %s", directory, e)
            return 0

        for entry in entries:
            if not (entry.name.startswith(TEMP_PREFIX) and entry.name.endswith(TEMP_SUFFIX) and entry.is_file()):
                continue
            try:
                entry.unlink()
            except OSError as e:
                logger.warning("Failed to remove temp file %s: %s", entry.name, e)
                continue
            removed += 1
            logger.info("Removed stale temp file: %s", entry.name)
        return removed

    def remove_orphaned_metadata(self) -> int:
        """Delete sidecars whose image is gone."""
        removed = 0
        self.remove_stale_temp_files(self.metadata_dir)
        try:
            names = list(self.store.iter_sidecar_names())
        except OSError as e:
            logger.warning("Failed to read metadata directory: %s", e)
            return 0

        for name in names:
            if (self.upload_dir / name).exists():
                continue
            if self.store.delete(name):
                removed += 1
                logger.info("Removed orphaned metadata file: %s.json", name)

        if removed:
            logger.info("Metadata cleanup complete: removed %d orphaned files", removed)
        return removed

    def remove_orphaned_thumbnails(self) -> int:
        """Delete thumbnails whose image is gone."""
        removed = 0
        self.remove_stale_temp_files(self.thumbnail_dir)
        try:
            thumbs = list(iter_image_files(self.thumbnail_dir))
        except OSError as e:
            logger.warning("Failed to read thumbnail directory: %s", e)
            return 0

        for thumb in thumbs:
            if (self.upload_dir / thumb.name).exists():
                continue
            try:
                thumb.unlink()
            except OSError as e:
                logger.warning("Failed to remove orphaned thumbnail %s: %s", thumb.name, e)
                continue
            removed += 1
            logger.info("Removed orphaned thumbnail file: %s", thumb.name)

        if removed:
            logger.info("Thumbnail cleanup complete: removed %d orphaned files", removed)
        return removed

    def run(self) -> dict:
        """Full startup pass. Returns counts per step."""
        self.ensure_directories()
        try:
            metadata_created = self.backfill_metadata()
            thumbnails_created = self.backfill_thumbnails()
        except OSError as e:
            logger.error("Failed to read upload directory: %s", e)
            metadata_created = thumbnails_created = 0
        return {
            "metadata_created": metadata_created,
            "thumbnails_created": thumbnails_created,
            "metadata_removed": self.remove_orphaned_metadata(),
            "thumbnails_removed": self.remove_orphaned_thumbnails(),
        }
