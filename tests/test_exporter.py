import io
import zipfile
from datetime import datetime, timezone

from exporter import archive_filename, iter_zip_chunks
from models import PhotoRecord

NOW = datetime(2024, 6, 7, 8, 9, 10)


def _record(name):
    return PhotoRecord.for_file(name, upload_time=datetime(2024, 1, 1, tzinfo=timezone.utc))


def test_archive_filename_variants():
    assert archive_filename(now=NOW) == "gallery_photos_2024-06-07_08-09-10.zip"
    assert archive_filename("Summer Party", now=NOW) == "gallery_photos_Summer_Party_2024-06-07_08-09-10.zip"
    assert archive_filename(uploader="Alice", now=NOW) == "gallery_photos_Alice_2024-06-07_08-09-10.zip"
    assert archive_filename("Party", "Bob Smith", NOW) == "gallery_photos_Party_Bob_Smith_2024-06-07_08-09-10.zip"
    assert archive_filename("", "", NOW) == "gallery_photos_2024-06-07_08-09-10.zip"


def test_zip_contains_each_file(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"A" * 10)
    (tmp_path / "b.png").write_bytes(bytes(range(256)) * 2000)

    data = b"".join(iter_zip_chunks([_record("a.jpg"), _record("b.png")], tmp_path))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["a.jpg", "b.png"]
        assert zf.read("a.jpg") == b"A" * 10
        assert zf.read("b.png") == bytes(range(256)) * 2000
        assert zf.testzip() is None


def test_zip_streams_in_pieces(tmp_path):
    (tmp_path / "big.jpg").write_bytes(bytes(range(256)) * 8192)

    chunks = list(iter_zip_chunks([_record("big.jpg")], tmp_path))

    assert len(chunks) > 1
    assert all(chunks)


def test_zip_skips_missing_files(tmp_path):
    (tmp_path / "here.jpg").write_bytes(b"x")

    data = b"".join(iter_zip_chunks([_record("gone.jpg"), _record("here.jpg")], tmp_path))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["here.jpg"]


def test_zip_with_nothing_readable_is_still_valid(tmp_path):
    data = b"".join(iter_zip_chunks([_record("gone.jpg")], tmp_path))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == []
