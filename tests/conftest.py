"""Shared fixtures: an in-process fake backend and a wired library engine."""

import asyncio
import io
import json
import re
import zipfile
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

from stemsplit.core.api import BackendClient
from stemsplit.core.config import ApiConfig
from stemsplit.core.identity import StaticIdentity
from stemsplit.core.output import set_quiet
from stemsplit.core.storage import MemoryKeyValueStore
from stemsplit.domain.library.archive import SessionBlobs
from stemsplit.domain.library.engine import LibraryEngine
from stemsplit.domain.library.layers import generate_layers_from_files
from stemsplit.domain.library.models import StemFile, Track
from stemsplit.domain.library.store import TrackStore

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def quiet_output():
    """Keep log() from echoing to the terminal during tests."""
    set_quiet(True)
    yield
    set_quiet(False)


def zip_bytes(entries: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buffer.getvalue()


class FakeBackend:
    """httpx.MockTransport handler emulating the splitting backend."""

    def __init__(self) -> None:
        self.uid = "user-1"
        self.songs: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []
        self.failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.upload_response: httpx.Response = httpx.Response(
            200,
            json={"song_id": "remote-1", "uid": "user-1", "files": ["vocals.mp3", "drums.mp3"]},
        )
        self.gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self.held: Set[Tuple[str, str]] = set()

    def fail(self, method: str, path: str, status: int = 500, body: Any = None) -> None:
        self.failures[(method, path)] = (status, body or {"detail": "boom"})

    def hold(self, method: str, path: str) -> asyncio.Event:
        """Block matching requests until the returned event is set."""
        gate = asyncio.Event()
        self.gates[(method, path)] = gate
        return gate

    async def wait_held(self, method: str, path: str) -> None:
        while (method, path) not in self.held:
            await asyncio.sleep(0)

    async def handle_async(self, request: httpx.Request) -> httpx.Response:
        gate = self.gates.get((request.method, request.url.path))
        if gate is not None:
            self.held.add((request.method, request.url.path))
            await gate.wait()
        return self(request)

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [
            r.url.path for r in self.requests if method is None or r.method == method
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path

        failure = self.failures.get((method, path))
        if failure:
            status, body = failure
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        if request.url.host == "cdn.example":
            return httpx.Response(200, content=b"signed-audio")

        if method == "GET" and path == "/my-songs":
            return httpx.Response(200, json={"songs": self.songs, "uid": self.uid})
        if method == "POST" and path == "/upload":
            return self.upload_response
        if method == "DELETE" and path == "/songs":
            self.songs = []
            return httpx.Response(204)
        if method == "DELETE" and path.startswith("/songs/"):
            song_id = path.rsplit("/", 1)[-1]
            self.songs = [s for s in self.songs if s.get("song_id") != song_id]
            return httpx.Response(204)
        if method == "POST" and path == "/presigned-url":
            body = json.loads(request.content)
            return httpx.Response(
                200, json={"url": f"https://cdn.example/{body['song_id']}/{body['filename']}"}
            )

        match = re.fullmatch(r"/songs/([^/]+)/zip", path)
        if method == "GET" and match:
            return httpx.Response(200, content=zip_bytes({"vocals.mp3": b"v"}))
        if method == "GET" and path.startswith("/cache/"):
            return httpx.Response(200, content=zip_bytes({"bass.mp3": b"b"}))
        if method == "GET" and path.startswith("/stems/"):
            return httpx.Response(200, content=b"cached-audio")

        return httpx.Response(404, json={"detail": "Not Found"})


@pytest.fixture
def make_zip():
    return zip_bytes


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def blobs(tmp_path) -> SessionBlobs:
    return SessionBlobs(tmp_path / "blobs")


def build_library(
    backend: FakeBackend,
    storage: MemoryKeyValueStore,
    blobs: SessionBlobs,
    user_id: str = "user-1",
) -> LibraryEngine:
    identity = StaticIdentity(user_id, "token-123")
    api = BackendClient(ApiConfig(base_url="http://backend.test"), identity,
                        transport=httpx.MockTransport(backend.handle_async))
    return LibraryEngine(TrackStore(storage), api, identity, blobs=blobs)


@pytest.fixture
def library(backend, storage, blobs) -> LibraryEngine:
    """Library engine for an authenticated user talking to the fake backend."""
    return build_library(backend, storage, blobs)


@pytest.fixture
def anonymous_library(backend, storage, blobs) -> LibraryEngine:
    return build_library(backend, storage, blobs, user_id="")


@pytest.fixture
def make_track():
    """Factory for tracks; minutes_ago orders them by added_at."""

    def _make(
        track_id: str = "t1",
        title: str = "Song",
        filenames: Tuple[str, ...] = ("vocals.mp3", "drums.mp3"),
        minutes_ago: int = 0,
        **changes: Any,
    ) -> Track:
        files = tuple(StemFile(name) for name in filenames)
        track = Track(
            id=track_id,
            title=title,
            added_at=NOW - timedelta(minutes=minutes_ago),
            files=files,
            layers=tuple(generate_layers_from_files(files)),
            processed=True,
        )
        return track._replace(**changes) if changes else track

    return _make
