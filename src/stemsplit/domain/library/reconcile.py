"""
Library reconciliation.

Merges the locally cached library with the backend's listing into one
authoritative, ordered view. Pure functions only; fetching happens in the
library engine.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .layers import generate_layers_from_files
from .models import StemFile, Track
from .store import parse_timestamp


def is_visible_to(track: Track, session_uid: Optional[str]) -> bool:
    """Ownership rule: owned entries are only visible to their owner;
    anonymous sessions only see unowned entries."""
    if track.owner_id is None:
        return True
    return session_uid is not None and track.owner_id == session_uid


def filter_visible(tracks: Iterable[Track], session_uid: Optional[str]) -> List[Track]:
    return [t for t in tracks if is_visible_to(t, session_uid)]


def added_at_sort_key(track: Track) -> float:
    """Epoch seconds for sorting; unparseable timestamps sort as oldest."""
    parsed = parse_timestamp(track.added_at)
    return parsed.timestamp() if parsed else float("-inf")


def sort_tracks(tracks: Iterable[Track]) -> List[Track]:
    """Most recent first. Stable, so equal timestamps keep their order."""
    return sorted(tracks, key=added_at_sort_key, reverse=True)


def _remote_files(raw_files: Any) -> tuple[StemFile, ...]:
    files = []
    for raw in raw_files or []:
        if isinstance(raw, str):
            files.append(StemFile(filename=raw))
        elif isinstance(raw, dict) and raw.get("filename"):
            files.append(StemFile(filename=raw["filename"]))
    return tuple(files)


def remote_song_to_track(song: Dict[str, Any], owner_id: Optional[str]) -> Optional[Track]:
    """Convert one /my-songs entry into a Track keyed by its remote id."""
    song_id = song.get("song_id") or song.get("songId")
    if not song_id:
        return None
    song_id = str(song_id)

    files = _remote_files(song.get("files"))
    added_at = parse_timestamp(song.get("created_at") or song.get("createdAt"))

    return Track(
        id=song_id,
        title=song.get("title") or f"Song {song_id[:8]}",
        added_at=added_at or datetime.now(timezone.utc),
        files=files,
        layers=tuple(generate_layers_from_files(files)),
        remote_id=song_id,
        owner_id=owner_id,
        processed=True,
    )


def parse_remote_listing(payload: Dict[str, Any]) -> List[Track]:
    """Convert a /my-songs payload ({songs, uid}) into tracks."""
    owner_id = payload.get("uid") or payload.get("ownerId")
    tracks = []
    for song in payload.get("songs") or []:
        if isinstance(song, dict):
            track = remote_song_to_track(song, owner_id)
            if track:
                tracks.append(track)
    return tracks


def merge_track(local: Track, remote: Track) -> Track:
    """Merge a local and a remote record that share a remote identity.

    Remote metadata wins; local-only data (the client id, in-session blob
    paths, local-only files, cache key, source name) is kept.
    """
    local_files = {f.filename: f for f in local.files}
    remote_names = set()
    files = []
    for remote_file in remote.files:
        remote_names.add(remote_file.filename)
        local_file = local_files.get(remote_file.filename)
        blob_path = remote_file.blob_path or (local_file.blob_path if local_file else None)
        files.append(StemFile(remote_file.filename, blob_path))
    files.extend(f for f in local.files if f.filename not in remote_names)

    return local._replace(
        title=remote.title,
        added_at=remote.added_at,
        files=tuple(files),
        layers=tuple(generate_layers_from_files(files)),
        remote_id=remote.remote_id,
        owner_id=remote.owner_id,
        cache_key=remote.cache_key or local.cache_key,
        processed=remote.processed or local.processed,
        source_name=remote.source_name or local.source_name,
    )


def reconcile(
    local: Iterable[Track],
    remote: Optional[Iterable[Track]],
    session_uid: Optional[str],
) -> List[Track]:
    """Produce the authoritative library view.

    Args:
        local: Cached tracks (any order)
        remote: Tracks from the backend listing, or None when the fetch failed
            or the session is anonymous
        session_uid: Authenticated user id, None for anonymous sessions

    Returns:
        Ownership-filtered union sorted by added_at, most recent first. Each
        remote record appears exactly once.
    """
    merged = filter_visible(local, session_uid)
    if remote is None:
        return sort_tracks(merged)

    by_remote_id: Dict[str, int] = {}
    deduped: List[Track] = []
    for track in merged:
        if track.remote_id:
            if track.remote_id in by_remote_id:
                continue
            by_remote_id[track.remote_id] = len(deduped)
        deduped.append(track)

    for remote_track in remote:
        index = by_remote_id.get(remote_track.remote_id) if remote_track.remote_id else None
        if index is not None:
            deduped[index] = merge_track(deduped[index], remote_track)
        else:
            if remote_track.remote_id:
                by_remote_id[remote_track.remote_id] = len(deduped)
            deduped.append(remote_track)

    return sort_tracks(deduped)
