"""Thumbnail generation and lookup."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from config import GallerySettings
from errors import DecodeError, IOFailure, NotFound
from resizer import decode_image, encode_image, resize_nearest, target_dimensions
from utils import resolve_under_root

logger = logging.getLogger(__name__)


class ThumbnailManager:
    """
    Thumbnails live in <metadata>/thumbnails/<filename>, same name and
    extension as the source photo, re-encoded at a fixed size and quality.
    """

    def __init__(self, settings: GallerySettings):
        self.upload_dir = Path(settings.upload_dir)
        self.thumbnail_dir = settings.thumbnail_dir
        self.size = settings.thumbnail_size
        self.quality = settings.thumbnail_quality

    def thumbnail_path(self, filename: str) -> Path:
        return self.thumbnail_dir / filename

    def generate(self, source_path: Path, thumb_path: Path) -> None:
        """Decode, resize and write a thumbnail. Raises DecodeError or IOFailure."""
        image, fmt = decode_image(source_path)
        width, height = target_dimensions(image.width, image.height, self.size)
        thumb = resize_nearest(image, width, height)

        tmp_path: Optional[Path] = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=thumb_path.parent, prefix=".", suffix=".tmp")
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as f:
                encode_image(thumb, fmt, f, self.quality)
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, thumb_path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise IOFailure(f"Cannot write thumbnail {thumb_path.name}: {e}", thumb_path) from e

    def ensure(self, source_path: Path, thumb_path: Path) -> bool:
        """Generate the thumbnail unless one already exists. True if one was written."""
        if thumb_path.exists():
            return False
        self.generate(source_path, thumb_path)
        return True

    def serve(self, filename: str, regenerate: bool = False) -> Path:
        """
        Path of the thumbnail for filename.

        With regenerate=True a missing thumbnail is rebuilt from its source
        first; failing that, NotFound is raised like for a plain miss.
        """
        thumb_path = resolve_under_root(self.thumbnail_dir, self.thumbnail_path(filename))
        if thumb_path.is_file():
            return thumb_path

        source_path = resolve_under_root(self.upload_dir, self.upload_dir / filename)
        if regenerate and source_path.is_file():
            try:
                self.ensure(source_path, thumb_path)
                return thumb_path
            except (DecodeError, IOFailure) as e:
                logger.warning("Failed to regenerate thumbnail for %s: %s", filename, e)
        raise NotFound(f"Thumbnail not found: {filename}")
