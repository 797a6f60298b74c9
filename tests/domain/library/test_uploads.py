"""Tests for upload validation and stem selection."""

from unittest.mock import MagicMock

import pytest
from mutagen.mp3 import MP3

from stemsplit.core.config import UploadConfig
from stemsplit.domain.library import uploads
from stemsplit.domain.library.exceptions import UploadValidationError
from stemsplit.domain.library.uploads import StemSelection, validate_stems, validate_upload_file


@pytest.fixture
def mp3_file(tmp_path, monkeypatch):
    path = tmp_path / "song.mp3"
    path.write_bytes(b"\xff\xfb" + b"\x00" * 1024)
    monkeypatch.setattr(uploads, "MutagenFile", lambda p: MagicMock(spec=MP3))
    return path


class TestValidateUploadFile:
    def test_valid_mp3(self, mp3_file) -> None:
        assert validate_upload_file(mp3_file) == mp3_file

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(UploadValidationError, match="File not found"):
            validate_upload_file(tmp_path / "nope.mp3")

    def test_too_large(self, mp3_file) -> None:
        with pytest.raises(UploadValidationError, match="MB or smaller"):
            validate_upload_file(mp3_file, UploadConfig(max_file_size_mb=0.0001))

    def test_wrong_extension(self, tmp_path) -> None:
        path = tmp_path / "song.wav"
        path.write_bytes(b"RIFF")
        with pytest.raises(UploadValidationError, match="Only MP3 files are accepted"):
            validate_upload_file(path)

    def test_not_really_mp3(self, tmp_path) -> None:
        path = tmp_path / "song.mp3"
        path.write_text("definitely not audio")
        with pytest.raises(UploadValidationError, match="not a valid MP3"):
            validate_upload_file(path)


class TestValidateStems:
    def test_normalizes_and_dedupes(self) -> None:
        assert validate_stems([" Vocals", "drums", "vocals"]) == ["vocals", "drums"]

    def test_empty_rejected(self) -> None:
        with pytest.raises(UploadValidationError):
            validate_stems([])
        with pytest.raises(UploadValidationError):
            validate_stems(None)

    def test_unknown_rejected(self) -> None:
        with pytest.raises(UploadValidationError, match="kazoo"):
            validate_stems(["vocals", "kazoo"])


class TestStemSelection:
    def test_toggle(self) -> None:
        selection = StemSelection([])
        assert selection.toggle("bass") is True
        assert selection.toggle("bass") is False
        assert selection.selected == []

    def test_voice_aliases(self) -> None:
        selection = StemSelection([])
        selection.toggle("percussion")
        selection.toggle("original audio")
        assert selection.selected == ["drums", "original"]

    def test_all_and_none(self) -> None:
        selection = StemSelection([])
        selection.toggle("all")
        assert selection.selected == ["vocals", "drums", "bass", "other", "instrumental"]
        selection.toggle("none")
        assert selection.selected == []

    def test_unknown_stem(self) -> None:
        with pytest.raises(UploadValidationError):
            StemSelection().toggle("kazoo")
