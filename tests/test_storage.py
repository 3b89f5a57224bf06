"""Unit tests for on-disk photo persistence."""

from pathlib import Path
from unittest.mock import patch

from camera_bridge.models import CachedPhoto
from camera_bridge.storage import photo_path, save_photo
from tests.conftest import make_photo, run_async


def cached(user_id="alice", mime_type="image/jpeg", timestamp=1000):
    photo = make_photo("p1", data=b"data", timestamp=timestamp)
    return CachedPhoto(
        user_id=user_id,
        request_id=photo.request_id,
        data=photo.data,
        mime_type=mime_type,
        filename=photo.filename,
        timestamp=photo.timestamp,
        size=photo.size,
    )


class TestPhotoPath:
    def test_extension_from_mime_type(self):
        assert photo_path(cached(mime_type="image/png"), "photos") == Path("photos/photo_alice_1000.png")

    def test_fallback_extension(self):
        assert photo_path(cached(mime_type="image/"), "photos").suffix == ".jpg"
        assert photo_path(cached(mime_type="octet"), "photos").suffix == ".jpg"

    def test_user_id_is_sanitized(self):
        path = photo_path(cached(user_id="../evil user"), "photos")
        assert path.parent == Path("photos")
        assert "/" not in path.name


class TestSavePhoto:
    def test_creates_directory_and_writes(self, tmp_path):
        target = tmp_path / "nested" / "photos"
        path = run_async(save_photo(cached(), target))
        assert path == target / "photo_alice_1000.jpeg"
        assert path.read_bytes() == b"data"

    def test_write_failure_is_logged_not_raised(self, tmp_path):
        with patch("camera_bridge.storage._write", side_effect=OSError("read-only fs")):
            assert run_async(save_photo(cached(), tmp_path)) is None
