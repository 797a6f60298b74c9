"""
Stem and song downloads with per-key abort handles.

At most one download runs per key. Cancelling finalizes the downloading flag
and posts a plain notice; only real failures post a destructive one.
"""

import asyncio
import io
import re
import shutil
import zipfile
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from stemsplit.core.api import ApiError
from stemsplit.notifications import NoticeBoard

from .engine import LibraryEngine
from .exceptions import DownloadError, LibraryError
from .models import StemFile, Track, channel_key
from .sources import is_local_source, resolve_source

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]+')


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", name).strip().strip(".")
    return cleaned or "download"


def song_key(track: Track) -> str:
    return f"{track.id}__song"


class DownloadManager:
    """Runs downloads as tasks keyed by channel key (stems) or song key."""

    def __init__(self, library: LibraryEngine, notices: NoticeBoard, target_dir: Path):
        self.library = library
        self.notices = notices
        self.target_dir = Path(target_dir)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._background: Set[asyncio.Task] = set()

    def is_downloading(self, key: str) -> bool:
        return key in self._tasks

    @property
    def active_keys(self) -> List[str]:
        return list(self._tasks)

    def cancel(self, key: str) -> bool:
        """Abort an in-flight download. Returns False if nothing was running."""
        task = self._tasks.get(key)
        if task is None:
            return False
        task.cancel()
        return True

    def start(self, track: Track, stem_file: Optional[StemFile] = None) -> str:
        """Run a download in the background; returns its key for cancel()."""
        if stem_file is not None:
            key = channel_key(track.id, stem_file.filename)
            coro = self.download_stem(track, stem_file)
        else:
            key = song_key(track)
            coro = self.download_song(track)

        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return key

    async def drain(self) -> None:
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def download_stem(self, track: Track, stem_file: StemFile) -> Optional[Path]:
        key = channel_key(track.id, stem_file.filename)
        return await self._run(
            key, stem_file.filename, lambda: self._fetch_stem(track, stem_file)
        )

    async def download_song(self, track: Track) -> Optional[Path]:
        return await self._run(song_key(track), track.title, lambda: self._fetch_song(track))

    async def _run(
        self, key: str, label: str, factory: Callable[[], Awaitable[Path]]
    ) -> Optional[Path]:
        if key in self._tasks:
            logger.info(f"Download already in progress: {key}")
            return None

        task = asyncio.get_running_loop().create_task(factory())
        self._tasks[key] = task
        try:
            await asyncio.wait([task])
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._tasks.pop(key, None)

        if task.cancelled():
            self.notices.post("Download cancelled", f"Download of {label} was cancelled.")
            return None

        error = task.exception()
        if error is not None:
            if isinstance(error, (ApiError, LibraryError, OSError)):
                self.notices.post("Download failed", str(error), variant="destructive")
                return None
            raise error

        path = task.result()
        self.notices.post("Download complete", f"Saved {path.name}")
        return path

    async def _fetch_stem(self, track: Track, stem_file: StemFile) -> Path:
        source = await resolve_source(self.library, track, stem_file)
        if source is None:
            raise DownloadError(f"No source available for {stem_file.filename}")

        destination = self._destination(f"{track.title}_{Path(stem_file.filename).name}")
        if is_local_source(source):
            shutil.copyfile(source, destination)
        else:
            destination.write_bytes(await self.library.api.fetch_bytes(source))

        logger.info(f"Downloaded {stem_file.filename} to {destination}")
        return destination

    async def _fetch_song(self, track: Track) -> Path:
        if track.remote_id and self.library.session_uid:
            data = await self.library.api.download_song_archive(track.remote_id)
        elif track.cache_key:
            data = await self.library.api.download_cache_archive(track.cache_key)
        elif track.files and all(f.blob_path for f in track.files):
            data = self._zip_blobs(track)
        else:
            raise DownloadError(f"No archive available for {track.title}")

        destination = self._destination(f"{track.title}.zip")
        destination.write_bytes(data)
        logger.info(f"Downloaded archive for {track.title} to {destination}")
        return destination

    def _zip_blobs(self, track: Track) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for stem_file in track.files:
                archive.write(stem_file.blob_path, arcname=stem_file.filename)
        return buffer.getvalue()

    def _destination(self, name: str) -> Path:
        self.target_dir.mkdir(parents=True, exist_ok=True)
        return self.target_dir / safe_filename(name)
