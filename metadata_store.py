"""Sidecar metadata storage: one JSON file per photo under the metadata root."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from config import GallerySettings
from errors import MetadataCorrupt
from models import PhotoRecord

logger = logging.getLogger(__name__)

SIDECAR_SUFFIX = ".json"


class MetadataStore:
    """Reads and writes PhotoRecord sidecars keyed by photo filename."""

    def __init__(self, settings: GallerySettings):
        self.metadata_dir = Path(settings.metadata_dir)

    def path_for(self, filename: str) -> Path:
        return self.metadata_dir / f"{filename}{SIDECAR_SUFFIX}"

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def save(self, record: PhotoRecord) -> bool:
        """
        Persist a record. The sidecar is written to a temp file (mode 0600)
        and moved into place, so a crash never leaves a half-written sidecar.

        Failures are logged and reported through the return value, never raised.
        """
        target = self.path_for(record.filename)
        tmp_path: Optional[Path] = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.metadata_dir, prefix=".", suffix=".tmp")
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.to_json())
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            logger.warning("Failed to save metadata for %s: %s", record.filename, e)
            return False
        return True

    def load(self, filename: str) -> Optional[PhotoRecord]:
        """Return the stored record, or None when the sidecar is missing or unreadable."""
        path = self.path_for(filename)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Failed to read metadata for %s: %s", filename, e)
            return None

        try:
            return self._decode(filename, raw)
        except MetadataCorrupt as e:
            logger.warning("Ignoring corrupt metadata: %s", e)
            return None

    @staticmethod
    def _decode(filename: str, raw: str) -> PhotoRecord:
        try:
            return PhotoRecord.model_validate_json(raw)
        except ValidationError as e:
            raise MetadataCorrupt(f"{filename}: {e.error_count()} invalid field(s)") from e

    def delete(self, filename: str) -> bool:
        """Remove a sidecar. Returns False if it could not be removed."""
        try:
            self.path_for(filename).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Failed to remove metadata for %s: %s", filename, e)
            return False
        return True

    def iter_sidecar_names(self) -> Iterator[str]:
        """Yield the photo filename each sidecar on disk belongs to."""
        for entry in sorted(self.metadata_dir.iterdir()):
            if entry.is_file() and entry.name.endswith(SIDECAR_SUFFIX):
                yield entry.name[: -len(SIDECAR_SUFFIX)]
