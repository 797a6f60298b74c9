"""
Library engine: add, remove, clear and rename tracks.

Every mutation is applied to the visible list first (synchronously) and
confirmed with the backend afterwards in fire-and-forget tasks. Failures of
that second phase are logged and recorded as background failures; they never
roll back the visible list.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import (
    Awaitable,
    Callable,
    Coroutine,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Set,
    Union,
)

from loguru import logger

from stemsplit.core.api import ApiError, BackendClient, NotAuthenticatedError, UploadResult
from stemsplit.core.identity import IdentityProvider

from .archive import SessionBlobs
from .exceptions import LibraryError, TermsNotAcceptedError, UploadError
from .layers import generate_layers_from_files
from .models import StemFile, Track
from .reconcile import parse_remote_listing, reconcile
from .store import TrackStore

TokenSource = Callable[[], Awaitable[str]]


class BackgroundFailure(NamedTuple):
    """A backend confirmation that failed after the local change was applied."""

    operation: str  # 'delete', 'delete_all', 'list'
    target: Optional[str]
    error: str


def new_track_id() -> str:
    return uuid.uuid4().hex


def _was_removed(track: Track, removed: Set[str]) -> bool:
    return track.id in removed or bool(track.remote_id and track.remote_id in removed)


class LibraryEngine:
    """Public library operations layered on the track store and reconciler."""

    def __init__(
        self,
        store: TrackStore,
        api: BackendClient,
        identity: IdentityProvider,
        blobs: Optional[SessionBlobs] = None,
        recaptcha_site_key: str = "",
        recaptcha_token_source: Optional[TokenSource] = None,
    ):
        self.store = store
        self.api = api
        self.identity = identity
        self.blobs = blobs or SessionBlobs()
        self.recaptcha_site_key = recaptcha_site_key
        self.recaptcha_token_source = recaptcha_token_source
        self.is_loading = False
        self.background_failures: List[BackgroundFailure] = []
        self._pending: Set[asyncio.Task] = set()
        self._removal_listeners: List[Callable[[Track], None]] = []
        # One set per in-flight load, collecting ids removed while it fetches
        self._load_watchers: List[Set[str]] = []

    # State

    @property
    def tracks(self) -> List[Track]:
        return self.store.tracks

    @property
    def is_initialized(self) -> bool:
        return self.store.initialized

    @property
    def session_uid(self) -> Optional[str]:
        user = self.identity.current_user()
        return user.uid if user else None

    def get(self, track_id: str) -> Optional[Track]:
        return self.store.get(track_id)

    def on_track_removed(self, listener: Callable[[Track], None]) -> None:
        """Register a teardown hook run synchronously for every removed track."""
        self._removal_listeners.append(listener)

    # Reconciliation

    async def load(self) -> List[Track]:
        """Reconcile the durable cache with the backend listing.

        Never raises for backend failures: a failed or skipped fetch leaves
        the ownership-filtered cache as the library.
        """
        uid = self.session_uid
        removed: Set[str] = set()
        self._load_watchers.append(removed)

        remote = None
        try:
            if uid:
                try:
                    payload = await self.api.list_songs()
                    remote = parse_remote_listing(payload)
                except ApiError as e:
                    logger.warning(f"Failed to load remote songs, using local cache: {e}")
                    self._record_failure("list", None, e)
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    logger.warning(f"Malformed remote song listing, using local cache: {e}")
                    self._record_failure("list", None, e)
        finally:
            self._load_watchers.remove(removed)

        # Snapshot after the fetch so mutations made while it ran are kept
        cached = self.store.load_cached()
        visible_ids = {t.id for t in self.store.tracks}
        local = self.store.tracks + [t for t in cached if t.id not in visible_ids]
        local = [t for t in local if not _was_removed(t, removed)]
        if remote is not None:
            remote = [t for t in remote if not _was_removed(t, removed)]

        merged = reconcile(local, remote, uid)
        self.store.replace(merged)
        self.store.mark_initialized()
        logger.info(
            f"Library loaded: {len(merged)} tracks "
            f"({'remote merged' if remote is not None else 'local only'})"
        )
        return merged

    async def refresh(self) -> List[Track]:
        return await self.load()

    async def set_identity(self, identity: IdentityProvider) -> List[Track]:
        """Switch identity: clear the visible list and reconcile from scratch."""
        self.identity = identity
        self.api.set_identity(identity)
        self.store.reset()
        return await self.load()

    # Mutations

    async def add_track(
        self,
        file_path: Union[str, Path],
        terms_accepted: bool,
        selected_stems: Optional[Sequence[str]] = None,
    ) -> Track:
        """Upload a file for splitting and prepend the resulting track.

        Raises:
            TermsNotAcceptedError: If the terms were not accepted (nothing is sent)
            UploadError: If the backend rejects the upload or is unreachable
        """
        if not terms_accepted:
            raise TermsNotAcceptedError()

        file_path = Path(file_path)
        self.is_loading = True
        try:
            token = await self._bot_verification_token()
            try:
                result = await self.api.upload(
                    file_path,
                    terms_accepted=True,
                    stems=list(selected_stems) if selected_stems else None,
                    recaptcha_token=token,
                )
            except ApiError as e:
                raise UploadError(str(e), status=e.status) from e

            track = self._track_from_upload(result, file_path)
            self.store.prepend(track)
            logger.info(f"Added track {track.id} ({track.title}, {len(track.files)} files)")
            return track
        finally:
            self.is_loading = False

    async def remove_track(self, track_id: str) -> Optional[Track]:
        """Remove a track now; delete it remotely in the background.

        Unknown ids are a no-op and return None.
        """
        track = self.store.remove(track_id)
        if track is None:
            return None

        self.blobs.release(track.files)
        self._notify_removed(track)

        if track.remote_id:
            self._spawn(self._delete_remote(track.remote_id))
        return track

    async def clear_library(self) -> List[Track]:
        """Remove every track and the durable cache; bulk-delete remotely."""
        removed = self.store.clear()

        for track in removed:
            self._notify_removed(track)

        if any(t.remote_id for t in removed):
            self._spawn(self._delete_all_remote())

        for track in removed:
            self.blobs.release(track.files)

        logger.info(f"Cleared library ({len(removed)} tracks)")
        return removed

    def rename_track(self, track_id: str, new_title: str) -> Optional[Track]:
        """Change the display title locally."""
        title = new_title.strip()
        if not title:
            raise LibraryError("Title cannot be empty")
        return self.store.update(track_id, title=title)

    async def resolve_playable_url(self, remote_id: str, filename: str) -> str:
        """Get a short-lived signed URL for one stem of a remotely stored song.

        Raises:
            NotAuthenticatedError: If there is no authenticated user
            ApiError: If the backend refuses
        """
        if not self.identity.current_user():
            raise NotAuthenticatedError()
        try:
            return await self.api.presigned_url(remote_id, filename)
        except NotAuthenticatedError:
            raise
        except ApiError as e:
            raise ApiError(f"Failed to get presigned URL: {e}", status=e.status) from e

    async def drain(self) -> None:
        """Wait for outstanding background confirmations."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Internals

    def _track_from_upload(self, result: UploadResult, file_path: Path) -> Track:
        track_id = new_track_id()
        now = datetime.now(timezone.utc)

        if result.kind == "json":
            data = result.data or {}
            raw_files = data.get("files") or []
            files = tuple(
                StemFile(filename=f if isinstance(f, str) else f.get("filename", ""))
                for f in raw_files
                if f
            )
            return Track(
                id=track_id,
                title=data.get("title") or file_path.name,
                added_at=now,
                files=files,
                layers=tuple(generate_layers_from_files(files)),
                remote_id=data.get("song_id") or data.get("songId"),
                owner_id=data.get("uid") or data.get("ownerId"),
                processed=True,
                source_name=file_path.name,
            )

        files = tuple(self.blobs.unpack_archive(result.archive or b"", track_id))
        return Track(
            id=track_id,
            title=file_path.name,
            added_at=now,
            files=files,
            layers=tuple(generate_layers_from_files(files)),
            cache_key=result.cache_key,
            processed=True,
            source_name=file_path.name,
        )

    async def _bot_verification_token(self) -> Optional[str]:
        if not self.recaptcha_site_key or not self.recaptcha_token_source:
            return None
        try:
            return await self.recaptcha_token_source()
        except Exception as e:
            logger.warning(f"Bot verification failed, uploading without token: {e}")
            return None

    def _notify_removed(self, track: Track) -> None:
        for removed in self._load_watchers:
            removed.add(track.id)
            if track.remote_id:
                removed.add(track.remote_id)

        for listener in list(self._removal_listeners):
            try:
                listener(track)
            except Exception:
                logger.exception(f"Removal hook failed for track {track.id}")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def _record_failure(self, operation: str, target: Optional[str], error: Exception) -> None:
        self.background_failures.append(BackgroundFailure(operation, target, str(error)))

    async def _delete_remote(self, remote_id: str) -> None:
        try:
            await self.api.delete_song(remote_id)
            logger.info(f"Deleted song {remote_id} from remote storage")
        except ApiError as e:
            logger.error(f"Failed to delete song {remote_id} from remote storage: {e}")
            self._record_failure("delete", remote_id, e)

    async def _delete_all_remote(self) -> None:
        try:
            await self.api.delete_all_songs()
            logger.info("Cleared all songs from remote storage")
        except ApiError as e:
            logger.error(f"Failed to clear remote songs: {e}")
            self._record_failure("delete_all", None, e)
