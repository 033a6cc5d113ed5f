"""
Best-effort "photo taken" time extraction.

Strategies are tried in order and the first timestamp found wins:

1. exiftool, when it is installed
2. EXIF embedded in the file, read in-process with Pillow
3. Date patterns in the filename (IMG_20230415_142530.jpg and friends)

Finding nothing is the common case for screenshots and re-encoded images,
so extraction returns None instead of raising.
"""
import json
import logging
import re
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from PIL import ExifTags, Image as PILImage

from config import GallerySettings
from models import as_aware

logger = logging.getLogger(__name__)

# Capture time first, then digitized, then modified/metadata times
DATE_FIELDS = (
    "DateTimeOriginal",
    "CreateDate",
    "DateTimeCreated",
    "DateTimeDigitized",
    "DateTime",
    "ModifyDate",
    "MetadataDate",
)

TIMESTAMP_FORMATS = (
    "%Y:%m:%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y:%m:%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y:%m:%d %H:%M:%S.%f%z",
    "%Y:%m:%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y:%m:%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y:%m:%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S",
    "%Y:%m:%d",
    "%Y-%m-%d",
    "%Y/%m/%d",
)

_FILENAME_DATE = re.compile(
    r"(?<!\d)(?P<year>(?:19|20)\d{2})[-_.]?(?P<month>\d{2})[-_.]?(?P<day>\d{2})"
    r"(?:[-_ T.]?(?P<hour>\d{2})[-_.:]?(?P<minute>\d{2})[-_.:]?(?P<second>\d{2}))?"
)

Strategy = Callable[[Path], Optional[datetime]]


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse value with the first matching format. Offset-less results are UTC."""
    value = (value or "").strip().strip("\x00").strip()
    if not value or value == "-":
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            return as_aware(datetime.strptime(value, fmt))
        except ValueError:
            continue
    return None


def _as_text(value) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "ignore")
    return str(value)


class ExifToolStrategy:
    """Query the exiftool CLI. A missing binary is a silent skip."""

    name = "exiftool"

    def __init__(self, executable: str = "exiftool", fields: Iterable[str] = DATE_FIELDS):
        self.executable = executable
        self.fields = tuple(fields)

    def __call__(self, path: Path) -> Optional[datetime]:
        exe = shutil.which(self.executable)
        if not exe:
            return None

        cmd = [exe, "-j", "-m", *(f"-{field}" for field in self.fields), str(path)]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.warning("exiftool failed for %s: %s", path.name, e)
            return None
        if proc.returncode != 0 or not proc.stdout.strip():
            return None

        try:
            rows = json.loads(proc.stdout)
        except json.JSONDecodeError as e:
            logger.warning("exiftool output for %s is not JSON: %s", path.name, e)
            return None
        if not rows or not isinstance(rows[0], dict):
            return None

        found = rows[0]
        for field in self.fields:
            if field not in found:
                continue
            ts = parse_timestamp(_as_text(found[field]))
            if ts is not None:
                logger.debug("Photo time for %s from exiftool %s: %s", path.name, field, ts.isoformat())
                return ts
            logger.debug("exiftool %s for %s is not a date: %r", field, path.name, found[field])
        return None


class EmbeddedExifStrategy:
    """
    Read EXIF with Pillow. Preferred fields are checked first, then every
    field whose name mentions "date" or "time".
    """

    name = "exif"

    def __init__(self, fields: Iterable[str] = DATE_FIELDS):
        self.fields = tuple(fields)

    def __call__(self, path: Path) -> Optional[datetime]:
        try:
            with PILImage.open(path) as im:
                tags = self.read_tags(im)
        except Exception as e:
            # Malformed EXIF blocks raise all sorts of errors inside Pillow
            logger.debug("No readable EXIF in %s: %s", path.name, e)
            return None
        return self.from_tags(tags, path.name)

    def from_tags(self, tags: Dict[str, object], label: str = "") -> Optional[datetime]:
        """Pick a timestamp from already-read {tag name: value} pairs."""
        for field in self.fields:
            if field in tags:
                ts = parse_timestamp(_as_text(tags[field]))
                if ts is not None:
                    logger.debug("Photo time for %s from EXIF %s: %s", label, field, ts.isoformat())
                    return ts

        for name, value in tags.items():
            lowered = name.lower()
            if "date" in lowered or "time" in lowered:
                ts = parse_timestamp(_as_text(value))
                if ts is not None:
                    logger.debug("Photo time for %s from EXIF %s: %s", label, name, ts.isoformat())
                    return ts
        return None

    @staticmethod
    def read_tags(im: PILImage.Image) -> Dict[str, object]:
        """Flatten IFD0, the Exif sub-IFD and GPS into {tag name: value}."""
        exif = im.getexif()
        tags: Dict[str, object] = {}
        for tag_id, value in exif.items():
            tags[ExifTags.TAGS.get(tag_id, str(tag_id))] = value

        for ifd_id, names in ((ExifTags.IFD.Exif, ExifTags.TAGS), (ExifTags.IFD.GPSInfo, ExifTags.GPSTAGS)):
            if ifd_id not in exif:
                continue
            for tag_id, value in exif.get_ifd(ifd_id).items():
                tags.setdefault(names.get(tag_id, str(tag_id)), value)
        return tags


class FilenameStrategy:
    """Recognize camera-style timestamps in the filename stem."""

    name = "filename"

    def __call__(self, path: Path) -> Optional[datetime]:
        for match in _FILENAME_DATE.finditer(Path(path).stem):
            parts = match.groupdict()
            try:
                ts = datetime(
                    int(parts["year"]),
                    int(parts["month"]),
                    int(parts["day"]),
                    int(parts["hour"] or 0),
                    int(parts["minute"] or 0),
                    int(parts["second"] or 0),
                )
            except ValueError:
                continue
            logger.debug("Photo time for %s from filename: %s", path.name, ts.isoformat())
            return as_aware(ts)
        return None


class PhotoTimeExtractor:
    """Runs strategies in order; the first one returning a timestamp wins."""

    def __init__(self, strategies: Optional[Iterable[Strategy]] = None):
        if strategies is None:
            strategies = [ExifToolStrategy(), EmbeddedExifStrategy(), FilenameStrategy()]
        self.strategies: List[Strategy] = list(strategies)

    @classmethod
    def from_settings(cls, settings: GallerySettings) -> "PhotoTimeExtractor":
        return cls([
            ExifToolStrategy(settings.exiftool_path),
            EmbeddedExifStrategy(),
            FilenameStrategy(),
        ])

    def extract(self, path: Path) -> Optional[datetime]:
        """Best guess of when the photo was taken, or None if unknown."""
        path = Path(path)
        for strategy in self.strategies:
            ts = strategy(path)
            if ts is not None:
                return ts
        return None
