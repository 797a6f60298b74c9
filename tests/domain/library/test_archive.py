"""Tests for unpacking split archives into the session directory."""

from pathlib import Path

import pytest

from stemsplit.domain.library.archive import SessionBlobs
from stemsplit.domain.library.exceptions import UploadError


class TestSessionBlobs:
    def test_unpack_archive(self, blobs, make_zip) -> None:
        files = blobs.unpack_archive(make_zip({"vocals.mp3": b"v", "stems/bass.wav": b"b"}), "t1")

        assert [f.filename for f in files] == ["vocals.mp3", "stems/bass.wav"]
        assert Path(files[1].blob_path) == blobs.root / "t1" / "stems" / "bass.wav"
        assert Path(files[1].blob_path).read_bytes() == b"b"

    def test_traversal_entries_are_skipped(self, blobs, make_zip, tmp_path) -> None:
        files = blobs.unpack_archive(make_zip({"../escape.mp3": b"x", "ok.mp3": b"y"}), "t1")

        assert [f.filename for f in files] == ["ok.mp3"]
        assert not (blobs.root / "escape.mp3").exists()

    def test_bad_archive(self, blobs) -> None:
        with pytest.raises(UploadError):
            blobs.unpack_archive(b"not a zip", "t1")

    def test_release_and_cleanup(self, blobs, make_zip) -> None:
        files = blobs.unpack_archive(make_zip({"vocals.mp3": b"v"}), "t1")

        assert blobs.release(files) == 1
        assert not Path(files[0].blob_path).exists()

        blobs.cleanup()
        assert not blobs.root.exists()

    def test_default_root_is_temporary(self) -> None:
        blobs = SessionBlobs()
        try:
            assert blobs.root.name.startswith("stemsplit-")
        finally:
            blobs.cleanup()
