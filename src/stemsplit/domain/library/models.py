"""
Library domain models.

Contains data structures for representing split tracks and their stems.
"""

from datetime import datetime
from typing import NamedTuple, Optional, Tuple


class StemFile(NamedTuple):
    """One file produced by the splitter.

    blob_path is the in-session content-locator: a file unpacked into the
    session directory. It never survives a restart.
    """

    filename: str
    blob_path: Optional[str] = None


class Layer(NamedTuple):
    """A stem layer derived from a track's files (never persisted on its own)."""

    id: str  # Canonical stem name (e.g. 'vocals', 'drums')
    display_name: str
    icon: str  # Icon tag resolved by the UI
    volume: int = 100


class Track(NamedTuple):
    """One uploaded/processed song.

    id is client-local; remote_id is assigned by the backend once the song is
    stored remotely. owner_id is the authenticated user that owns the entry,
    None for anonymous/local-only entries.
    """

    id: str
    title: str
    added_at: Optional[datetime]  # None when the stored timestamp was unparseable
    files: Tuple[StemFile, ...] = ()
    layers: Tuple[Layer, ...] = ()
    remote_id: Optional[str] = None
    owner_id: Optional[str] = None
    cache_key: Optional[str] = None  # Stable backend route for local-processing uploads
    processed: bool = False
    source_name: Optional[str] = None  # Name of the uploaded file


class ContentLocator(NamedTuple):
    """Where the audio for one stem file can be fetched from."""

    kind: str  # 'blob', 'remote' or 'cache'
    value: str  # Local path, remote song id, or cache key


LOCATOR_BLOB = "blob"
LOCATOR_REMOTE = "remote"
LOCATOR_CACHE = "cache"


def channel_key(track_id: str, filename: str) -> str:
    """Composite key addressing one playback channel."""
    return f"{track_id}__{filename}"


def locators_for(track: Track, stem_file: StemFile) -> Tuple[ContentLocator, ...]:
    """All locators for a stem file, in playback preference order.

    In-session blob first, then a signed URL for remotely stored songs, then the
    stable cache route.
    """
    locators = []
    if stem_file.blob_path:
        locators.append(ContentLocator(LOCATOR_BLOB, stem_file.blob_path))
    if track.remote_id:
        locators.append(ContentLocator(LOCATOR_REMOTE, track.remote_id))
    if track.cache_key:
        locators.append(ContentLocator(LOCATOR_CACHE, track.cache_key))
    return tuple(locators)
