"""Streaming ZIP export of catalog photos."""
import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from models import PhotoRecord

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "gallery_photos"
READ_CHUNK = 256 * 1024


def archive_filename(
    event: Optional[str] = None,
    uploader: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """gallery_photos[_<event>][_<uploader>]_<YYYY-MM-DD_HH-MM-SS>.zip"""
    now = now or datetime.now()
    parts = [ARCHIVE_PREFIX]
    for value in (event, uploader):
        if value:
            parts.append(value.replace(" ", "_"))
    parts.append(now.strftime("%Y-%m-%d_%H-%M-%S"))
    return "_".join(parts) + ".zip"


class _ChunkSink:
    """
    Write-only target for ZipFile. It has no tell()/seek(), so zipfile
    switches to streaming mode with data descriptors.
    """

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> Iterator[bytes]:
        chunks, self._chunks = self._chunks, []
        for chunk in chunks:
            if chunk:
                yield chunk


def iter_zip_chunks(records: Iterable[PhotoRecord], upload_dir: Path) -> Iterator[bytes]:
    """
    Yield a ZIP archive of the records' files piece by piece.

    Entries use the bare stored filename. A file that cannot be opened or
    read is logged and skipped; the rest of the archive is still produced.
    """
    sink = _ChunkSink()
    with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for record in records:
            filename = Path(record.storage_path).name or record.filename
            try:
                src = open(upload_dir / filename, "rb")
            except OSError as e:
                logger.warning("Failed to open file %s: %s", filename, e)
                continue

            with src:
                try:
                    with zf.open(filename, mode="w") as dst:
                        for chunk in iter(lambda: src.read(READ_CHUNK), b""):
                            dst.write(chunk)
                            yield from sink.drain()
                except OSError as e:
                    logger.warning("Failed to copy file %s to zip: %s", filename, e)
            yield from sink.drain()
    yield from sink.drain()
