import io
from pathlib import Path

import pytest
from PIL import Image as PILImage

from config import GallerySettings
from metadata_store import MetadataStore
from photo_time import EmbeddedExifStrategy, FilenameStrategy, PhotoTimeExtractor
from thumbnails import ThumbnailManager

PASSWORD = "letmein"


@pytest.fixture
def settings(tmp_path):
    return GallerySettings(
        gallery_password=PASSWORD,
        session_secret="test-session-secret",
        upload_dir=tmp_path / "uploads",
        metadata_dir=tmp_path / "metadata",
        templates_dir=tmp_path / "templates",
        static_dir=tmp_path / "static",
        exiftool_path="exiftool-not-installed",
    )


@pytest.fixture
def dirs(settings):
    for d in (settings.upload_dir, settings.metadata_dir, settings.thumbnail_dir):
        d.mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture
def store(dirs):
    return MetadataStore(dirs)


@pytest.fixture
def thumbnails(dirs):
    return ThumbnailManager(dirs)


@pytest.fixture
def extractor():
    # exiftool output depends on the host, so tests stick to in-process strategies
    return PhotoTimeExtractor([EmbeddedExifStrategy(), FilenameStrategy()])


@pytest.fixture
def make_image():
    """Write a solid-color image to path and return the path."""

    def _make(path: Path, size=(64, 48), fmt=None, color=(200, 30, 30), mode="RGB", **save_kwargs) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.new(mode, size, color).save(path, format=fmt, **save_kwargs)
        return path

    return _make


@pytest.fixture
def image_bytes():
    """Encode a solid-color image in memory."""

    def _bytes(size=(64, 48), fmt="JPEG", color=(30, 200, 30)) -> bytes:
        buf = io.BytesIO()
        PILImage.new("RGB", size, color).save(buf, format=fmt)
        return buf.getvalue()

    return _bytes
