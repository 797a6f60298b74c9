"""
In-session blob storage.

Archives returned by the backend in local-processing mode are unpacked into a
per-session temporary directory; each extracted file path is the playable
content-locator for its stem. Releasing a track deletes its files.
"""

import io
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger

from stemsplit.core.path_security import safe_join

from .exceptions import UploadError
from .models import StemFile


class SessionBlobs:
    """Owns the session directory holding unpacked stem files."""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else Path(tempfile.mkdtemp(prefix="stemsplit-"))
        self.root.mkdir(parents=True, exist_ok=True)

    def unpack_archive(self, data: bytes, track_id: str) -> List[StemFile]:
        """Extract every non-directory entry of a zip archive.

        Args:
            data: Raw archive bytes
            track_id: Client id of the owning track (entries go under root/track_id)

        Returns:
            StemFile per entry, with blob_path pointing at the extracted file

        Raises:
            UploadError: If the payload is not a readable zip archive
        """
        target_dir = self.root / track_id
        files: List[StemFile] = []

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                for info in archive.infolist():
                    if info.is_dir() or info.filename.endswith("/"):
                        continue

                    destination = safe_join(target_dir, info.filename)
                    if destination is None:
                        logger.warning(f"Skipping unsafe archive entry: {info.filename}")
                        continue

                    destination.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as source, open(destination, "wb") as out:
                        shutil.copyfileobj(source, out)

                    files.append(StemFile(filename=info.filename, blob_path=str(destination)))
        except zipfile.BadZipFile as e:
            raise UploadError(f"Backend returned an unreadable archive: {e}") from e

        logger.debug(f"Unpacked {len(files)} stems for track {track_id}")
        return files

    def release(self, files: Iterable[StemFile]) -> int:
        """Delete the blob files of the given stems; returns how many were removed."""
        released = 0
        for stem_file in files:
            if not stem_file.blob_path:
                continue
            try:
                Path(stem_file.blob_path).unlink(missing_ok=True)
                released += 1
            except OSError as e:
                logger.warning(f"Failed to release {stem_file.blob_path}: {e}")
        return released

    def cleanup(self) -> None:
        """Remove the whole session directory."""
        shutil.rmtree(self.root, ignore_errors=True)
