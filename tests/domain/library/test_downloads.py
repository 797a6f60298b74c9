"""Tests for stem and song downloads."""

import asyncio
import zipfile

import pytest

from stemsplit.domain.library.downloads import DownloadManager, safe_filename, song_key
from stemsplit.domain.library.models import StemFile, channel_key
from stemsplit.notifications import NoticeBoard


@pytest.fixture
def notices() -> NoticeBoard:
    return NoticeBoard()


@pytest.fixture
def manager(library, notices, tmp_path) -> DownloadManager:
    return DownloadManager(library, notices, tmp_path / "downloads")


def titles(notices: NoticeBoard) -> list:
    return [n.title for n in notices.notices]


def test_safe_filename() -> None:
    assert safe_filename('AC/DC: "Live"?') == "AC_DC_ _Live_"
    assert safe_filename("...") == "download"


class TestDownloadStem:
    @pytest.mark.anyio
    async def test_copies_blob(self, manager, notices, make_track, tmp_path) -> None:
        blob = tmp_path / "vocals.mp3"
        blob.write_bytes(b"vocal-audio")
        stem_file = StemFile("vocals.mp3", str(blob))
        track = make_track(title="Song", files=(stem_file,))

        path = await manager.download_stem(track, stem_file)

        assert path.name == "Song_vocals.mp3"
        assert path.read_bytes() == b"vocal-audio"
        assert titles(notices) == ["Download complete"]

    @pytest.mark.anyio
    async def test_fetches_signed_url(self, manager, make_track) -> None:
        track = make_track(remote_id="r1", owner_id="user-1")

        path = await manager.download_stem(track, track.files[0])

        assert path.read_bytes() == b"signed-audio"

    @pytest.mark.anyio
    async def test_falls_back_to_cache_route(self, manager, backend, make_track) -> None:
        backend.fail("POST", "/presigned-url", 500)
        track = make_track(remote_id="r1", owner_id="user-1", cache_key="k1")

        path = await manager.download_stem(track, track.files[0])

        assert path.read_bytes() == b"cached-audio"
        assert "/stems/k1/vocals.mp3" in backend.paths("GET")

    @pytest.mark.anyio
    async def test_no_source_posts_failure(self, manager, notices, make_track) -> None:
        track = make_track()

        assert await manager.download_stem(track, track.files[0]) is None

        assert notices.latest.title == "Download failed"
        assert notices.latest.variant == "destructive"


class TestDownloadSong:
    @pytest.mark.anyio
    async def test_remote_archive(self, manager, backend, make_track) -> None:
        track = make_track(title="Song", remote_id="r1", owner_id="user-1")

        path = await manager.download_song(track)

        assert path.name == "Song.zip"
        assert "/songs/r1/zip" in backend.paths("GET")

    @pytest.mark.anyio
    async def test_cache_archive(self, manager, backend, make_track) -> None:
        path = await manager.download_song(make_track(cache_key="k1"))

        assert zipfile.ZipFile(path).namelist() == ["bass.mp3"]
        assert "/cache/k1" in backend.paths("GET")

    @pytest.mark.anyio
    async def test_zips_local_blobs(self, manager, make_track, tmp_path) -> None:
        blob = tmp_path / "drums.wav"
        blob.write_bytes(b"d")
        track = make_track(files=(StemFile("drums.wav", str(blob)),))

        path = await manager.download_song(track)

        assert zipfile.ZipFile(path).read("drums.wav") == b"d"


class TestCancel:
    @pytest.mark.anyio
    async def test_cancel_posts_plain_notice(self, manager, notices, make_track) -> None:
        track = make_track(remote_id="r1", owner_id="user-1")
        key = manager.start(track, track.files[0])
        assert key == channel_key(track.id, "vocals.mp3")

        await asyncio.sleep(0)
        assert manager.is_downloading(key)
        assert manager.cancel(key)
        await manager.drain()

        assert not manager.is_downloading(key)
        assert notices.latest.title == "Download cancelled"
        assert notices.latest.variant == "default"

    def test_cancel_unknown_key(self, manager) -> None:
        assert manager.cancel("nothing") is False

    @pytest.mark.anyio
    async def test_one_download_per_key(self, manager, notices, make_track) -> None:
        track = make_track(cache_key="k1")

        assert manager.start(track) == song_key(track)
        manager.start(track)
        await manager.drain()

        assert titles(notices) == ["Download complete"]
