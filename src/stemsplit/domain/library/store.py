"""
Track store: the ordered in-memory library mirrored to durable storage.

Durable writes only start after the store is marked initialized, so an empty
list that is still loading can never overwrite a non-empty cache.
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from stemsplit.core.storage import KeyValueStore

from .layers import generate_layers_from_files, sort_layers
from .models import Layer, StemFile, Track

LIBRARY_STORAGE_KEY = "music-analyzer-library"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Normalize a stored/remote timestamp to an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (with or without 'Z') and epoch
    numbers (seconds, or milliseconds when implausibly large). Returns None
    when the value cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def track_to_record(track: Track) -> Dict[str, Any]:
    """Serialize a track for durable storage (files reduced to filenames)."""
    return {
        "id": track.id,
        "title": track.title,
        "addedAt": track.added_at.isoformat() if track.added_at else None,
        "layers": [
            {
                "id": layer.id,
                "name": layer.display_name,
                "icon": layer.icon,
                "volume": layer.volume,
            }
            for layer in track.layers
        ],
        "files": [{"filename": f.filename} for f in track.files],
        "song_id": track.remote_id,
        "uid": track.owner_id,
        "cacheKey": track.cache_key,
        "processed": track.processed,
        "sourceName": track.source_name,
    }


def _layers_from_record(raw_layers: Any) -> List[Layer]:
    layers = []
    for raw in raw_layers or []:
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        layers.append(
            Layer(
                id=raw["id"],
                display_name=raw.get("name") or raw.get("display_name") or raw["id"],
                icon=raw.get("icon", "Music2"),
                volume=raw.get("volume", 100),
            )
        )
    return layers


def record_to_track(record: Dict[str, Any]) -> Optional[Track]:
    """Rehydrate a stored record. Blob locators never survive, so files come
    back filename-only. Returns None for records without an id."""
    track_id = record.get("id")
    if not track_id:
        return None

    files = tuple(
        StemFile(filename=f["filename"])
        for f in record.get("files") or []
        if isinstance(f, dict) and f.get("filename")
    )

    layers = _layers_from_record(record.get("layers"))
    if not layers:
        layers = generate_layers_from_files(files)

    return Track(
        id=str(track_id),
        title=record.get("title") or "",
        added_at=parse_timestamp(record.get("addedAt")),
        files=files,
        layers=tuple(sort_layers(layers)),
        remote_id=record.get("song_id"),
        owner_id=record.get("uid"),
        cache_key=record.get("cacheKey"),
        processed=bool(record.get("processed", False)),
        source_name=record.get("sourceName"),
    )


def serialize_tracks(tracks: Iterable[Track]) -> str:
    return json.dumps([track_to_record(t) for t in tracks])


def deserialize_tracks(payload: Optional[str]) -> List[Track]:
    """Parse the stored JSON array; corrupt payloads yield an empty list."""
    if not payload:
        return []
    try:
        records = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring corrupt library cache: {e}")
        return []
    if not isinstance(records, list):
        return []

    tracks = []
    for record in records:
        if isinstance(record, dict):
            track = record_to_track(record)
            if track:
                tracks.append(track)
    return tracks


class TrackStore:
    """Ordered collection of tracks with change listeners.

    Holds no network behaviour; every mutation is synchronous and persisted
    once the store is initialized.
    """

    def __init__(self, storage: KeyValueStore, key: str = LIBRARY_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self.initialized = False
        self._tracks: List[Track] = []
        self._listeners: List[Callable[[List[Track]], None]] = []

    @property
    def tracks(self) -> List[Track]:
        return list(self._tracks)

    def __len__(self) -> int:
        return len(self._tracks)

    def get(self, track_id: str) -> Optional[Track]:
        for track in self._tracks:
            if track.id == track_id:
                return track
        return None

    def subscribe(self, listener: Callable[[List[Track]], None]) -> None:
        self._listeners.append(listener)

    def load_cached(self) -> List[Track]:
        """Read the durable cache without touching the visible list."""
        try:
            payload = self.storage.get_item(self.key)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to read library cache: {e}")
            return []
        return deserialize_tracks(payload)

    def reset(self) -> None:
        """Empty the visible list and drop the initialized milestone (identity change)."""
        self.initialized = False
        self._tracks = []
        self._notify()

    def mark_initialized(self) -> None:
        self.initialized = True
        self.persist()

    def replace(self, tracks: Iterable[Track]) -> None:
        self._tracks = list(tracks)
        self._changed()

    def prepend(self, track: Track) -> None:
        self._tracks.insert(0, track)
        self._changed()

    def remove(self, track_id: str) -> Optional[Track]:
        track = self.get(track_id)
        if track is None:
            return None
        self._tracks = [t for t in self._tracks if t.id != track_id]
        self._changed()
        return track

    def update(self, track_id: str, **changes: Any) -> Optional[Track]:
        updated = None
        new_tracks = []
        for track in self._tracks:
            if track.id == track_id:
                track = track._replace(**changes)
                updated = track
            new_tracks.append(track)

        if updated is not None:
            self._tracks = new_tracks
            self._changed()
        return updated

    def clear(self) -> List[Track]:
        """Remove every track and the durable entry, regardless of milestone."""
        removed = self._tracks
        self._tracks = []
        try:
            self.storage.remove_item(self.key)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to clear library cache: {e}")
        self._notify()
        return removed

    def persist(self) -> None:
        if not self.initialized:
            return
        try:
            if self._tracks:
                self.storage.set_item(self.key, serialize_tracks(self._tracks))
            else:
                self.storage.remove_item(self.key)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to write library cache: {e}")

    def _changed(self) -> None:
        self.persist()
        self._notify()

    def _notify(self) -> None:
        snapshot = self.tracks
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Library listener failed")
