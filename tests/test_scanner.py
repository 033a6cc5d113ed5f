import os
from datetime import datetime, timezone

import pytest

from errors import StorageSetupError
from metadata_store import MetadataStore
from scanner import BACKFILL_UPLOADER, CatalogReconciler, is_image_file, iter_image_files
from thumbnails import ThumbnailManager


@pytest.fixture
def reconciler(settings, store, thumbnails, extractor):
    return CatalogReconciler(settings, store, thumbnails, extractor)


@pytest.mark.parametrize(
    "name,expected",
    [("a.jpg", True), ("B.JPEG", True), ("c.Png", True), ("d.gif", True), ("e.webp", True),
     ("f.txt", False), ("g.heic", False), ("jpg", False), (".png", False)],
)
def test_is_image_file(name, expected):
    assert is_image_file(name) is expected


def test_iter_image_files_is_flat_and_sorted(settings, make_image):
    make_image(settings.upload_dir / "b.jpg", fmt="JPEG")
    make_image(settings.upload_dir / "a.png", fmt="PNG")
    make_image(settings.upload_dir / "nested" / "c.jpg", fmt="JPEG")
    (settings.upload_dir / "readme.txt").write_text("x")

    assert [p.name for p in iter_image_files(settings.upload_dir)] == ["a.png", "b.jpg"]


def test_backfill_creates_defaults_from_mtime(reconciler, store, settings, make_image):
    path = make_image(settings.upload_dir / "old.jpg", fmt="JPEG")
    mtime = datetime(2022, 3, 4, 5, 6, 7, tzinfo=timezone.utc).timestamp()
    os.utime(path, (mtime, mtime))

    stats = reconciler.run()

    assert stats == {"metadata_created": 1, "thumbnails_created": 1, "metadata_removed": 0, "thumbnails_removed": 0}
    record = store.load("old.jpg")
    assert record.uploader_name == BACKFILL_UPLOADER
    assert record.event_name == ""
    assert record.storage_path == "/uploads/old.jpg"
    assert record.upload_time == datetime(2022, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    assert record.photo_time is None
    assert settings.thumbnail_dir.joinpath("old.jpg").is_file()


def test_backfill_extracts_photo_time(reconciler, store, settings, make_image):
    make_image(settings.upload_dir / "IMG_20230415_142530.jpg", fmt="JPEG")

    reconciler.run()

    assert store.load("IMG_20230415_142530.jpg").photo_time == datetime(2023, 4, 15, 14, 25, 30, tzinfo=timezone.utc)


def test_existing_sidecars_are_left_alone(reconciler, store, settings, make_image):
    make_image(settings.upload_dir / "a.jpg", fmt="JPEG")
    reconciler.run()
    record = store.load("a.jpg").model_copy(update={"uploader_name": "Alice", "event_name": "Party"})
    store.save(record)

    stats = reconciler.run()

    assert stats["metadata_created"] == 0
    assert store.load("a.jpg") == record


def test_orphans_are_removed(reconciler, store, settings, make_image):
    make_image(settings.upload_dir / "keep.jpg", fmt="JPEG")
    make_image(settings.thumbnail_dir / "gone.jpg", fmt="JPEG")
    reconciler.run()
    (settings.metadata_dir / "gone.jpg.json").write_text(store.load("keep.jpg").to_json())

    stats = reconciler.run()

    assert stats["metadata_removed"] == 1
    assert stats["thumbnails_removed"] == 0
    assert sorted(p.name for p in settings.metadata_dir.glob("*.json")) == ["keep.jpg.json"]
    assert sorted(p.name for p in settings.thumbnail_dir.iterdir()) == ["keep.jpg"]


def test_orphaned_thumbnail_is_removed(reconciler, settings, make_image):
    make_image(settings.thumbnail_dir / "gone.png", fmt="PNG")

    assert reconciler.run()["thumbnails_removed"] == 1
    assert not (settings.thumbnail_dir / "gone.png").exists()


def test_second_run_changes_nothing(reconciler, settings, make_image):
    make_image(settings.upload_dir / "a.jpg", fmt="JPEG")
    make_image(settings.upload_dir / "b.png", fmt="PNG")
    (settings.metadata_dir / "orphan.jpg.json").write_text("{}")

    first = reconciler.run()
    listing = sorted(p.relative_to(settings.metadata_dir) for p in settings.metadata_dir.rglob("*"))
    second = reconciler.run()

    assert first["metadata_created"] == 2
    assert first["metadata_removed"] == 1
    assert second == {"metadata_created": 0, "thumbnails_created": 0, "metadata_removed": 0, "thumbnails_removed": 0}
    assert sorted(p.relative_to(settings.metadata_dir) for p in settings.metadata_dir.rglob("*")) == listing


def test_undecodable_image_still_gets_metadata(reconciler, store, settings):
    (settings.upload_dir / "broken.jpg").write_bytes(b"not an image")

    stats = reconciler.run()

    assert stats["metadata_created"] == 1
    assert stats["thumbnails_created"] == 0
    assert store.load("broken.jpg") is not None
    assert not (settings.thumbnail_dir / "broken.jpg").exists()


def test_creates_missing_directories(settings, extractor):
    CatalogReconciler(settings, MetadataStore(settings), ThumbnailManager(settings), extractor).run()

    assert settings.upload_dir.is_dir()
    assert settings.thumbnail_dir.is_dir()


def test_unusable_storage_root_is_fatal(settings, extractor, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    bad = settings.model_copy(update={"upload_dir": blocker / "uploads"})

    with pytest.raises(StorageSetupError):
        CatalogReconciler(bad, MetadataStore(bad), ThumbnailManager(bad), extractor).run()


def test_interrupted_writes_are_swept(reconciler, store, settings, make_image):
    make_image(settings.upload_dir / "a.jpg", fmt="JPEG")
    reconciler.run()
    (settings.metadata_dir / ".k2j4h1.tmp").write_text('{"name": "a.jp')
    (settings.thumbnail_dir / ".9xq0zz.tmp").write_bytes(b"\xff\xd8")
    (settings.upload_dir / ".upload.tmp").write_bytes(b"x")

    stats = reconciler.run()

    assert stats == {"metadata_created": 0, "thumbnails_created": 0, "metadata_removed": 0, "thumbnails_removed": 0}
    assert sorted(p.name for p in settings.metadata_dir.iterdir()) == ["a.jpg.json", "thumbnails"]
    assert sorted(p.name for p in settings.thumbnail_dir.iterdir()) == ["a.jpg"]
    assert (settings.upload_dir / ".upload.tmp").exists()
    assert store.load("a.jpg") is not None


def test_remove_stale_temp_files_keeps_real_files(reconciler, settings):
    (settings.metadata_dir / ".abc.tmp").write_text("partial")
    (settings.metadata_dir / "notes.tmp").write_text("not ours")
    (settings.metadata_dir / ".hidden.json").write_text("{}")

    assert reconciler.remove_stale_temp_files(settings.metadata_dir) == 1
    assert sorted(p.name for p in settings.metadata_dir.iterdir()) == [".hidden.json", "notes.tmp", "thumbnails"]
