"""Catalog queries: listing, ordering, filtering and facet values."""
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from config import GallerySettings
from errors import NotFound
from metadata_store import MetadataStore
from models import PhotoRecord
from photo_time import PhotoTimeExtractor
from scanner import BACKFILL_UPLOADER, iter_image_files
from utils import resolve_under_root

logger = logging.getLogger(__name__)

FACET_FIELDS = {"event": "event_name", "uploader": "uploader_name"}


def effective_time(record: PhotoRecord) -> datetime:
    """Ordering key: photo time when known, upload time otherwise."""
    return record.photo_time if record.photo_time is not None else record.upload_time


def filter_photos(
    records: Iterable[PhotoRecord],
    event: Optional[str] = None,
    uploader: Optional[str] = None,
) -> List[PhotoRecord]:
    """Exact-match filter; an empty or missing value does not constrain that field."""
    return [
        r for r in records
        if (not event or r.event_name == event)
        and (not uploader or r.uploader_name == uploader)
    ]


def unique_values(records: Iterable[PhotoRecord], field: str) -> List[str]:
    """Distinct non-empty values of "event" or "uploader", sorted ascending."""
    try:
        attr = FACET_FIELDS[field]
    except KeyError:
        raise ValueError(f"Unknown facet field: {field}") from None
    return sorted({getattr(r, attr) for r in records if getattr(r, attr)})


def unique_events(records: Iterable[PhotoRecord]) -> List[str]:
    return unique_values(records, "event")


def unique_uploaders(records: Iterable[PhotoRecord]) -> List[str]:
    return unique_values(records, "uploader")


class PhotoCatalog:
    """Read side of the gallery, built from the upload directory and its sidecars."""

    def __init__(self, settings: GallerySettings, store: MetadataStore, extractor: PhotoTimeExtractor):
        self.upload_dir = Path(settings.upload_dir)
        self.store = store
        self.extractor = extractor

    def list_all(self) -> List[PhotoRecord]:
        """
        One record per image in the upload directory, newest effective time first.

        Images without a sidecar get a default record that is not persisted;
        reconciliation is what writes sidecars.
        """
        records = []
        for file in iter_image_files(self.upload_dir):
            record = self.store.load(file.name)
            if record is None:
                record = self._synthesize(file)
                if record is None:
                    continue
            records.append(record)
        records.sort(key=effective_time, reverse=True)
        return records

    def _synthesize(self, file: Path) -> Optional[PhotoRecord]:
        try:
            mtime = datetime.fromtimestamp(file.stat().st_mtime).astimezone()
        except OSError as e:
            logger.warning("Skipping %s: %s", file.name, e)
            return None
        return PhotoRecord.for_file(
            file.name,
            upload_time=mtime,
            uploader_name=BACKFILL_UPLOADER,
            photo_time=self.extractor.extract(file),
        )

    def get_photo_path(self, filename: str) -> Path:
        """Absolute path of a stored photo. Raises NotFound."""
        path = resolve_under_root(self.upload_dir, self.upload_dir / filename)
        if not path.is_file():
            raise NotFound(f"Photo not found: {filename}")
        return path
