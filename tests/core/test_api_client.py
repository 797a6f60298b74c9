"""Tests for the backend HTTP client."""

import io
import zipfile

import httpx
import pytest

from stemsplit.core.api import (
    ApiError,
    BackendClient,
    NotAuthenticatedError,
    extract_error_detail,
)
from stemsplit.core.config import ApiConfig
from stemsplit.core.identity import StaticIdentity


def make_client(handler, user_id: str = "user-1") -> BackendClient:
    return BackendClient(
        ApiConfig(base_url="http://backend.test/"),
        StaticIdentity(user_id, "token-123"),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def song_file(tmp_path):
    path = tmp_path / "song.mp3"
    path.write_bytes(b"ID3fake")
    return path


class TestExtractErrorDetail:
    """Tests for turning failed responses into messages."""

    def test_server_error_uses_detail(self) -> None:
        response = httpx.Response(500, json={"detail": "splitter crashed"})
        assert extract_error_detail(response, "/upload") == "Backend server error: splitter crashed"

    def test_not_found_names_path(self) -> None:
        response = httpx.Response(404, json={"detail": "Not Found"})
        assert extract_error_detail(response, "/my-songs") == "Endpoint not found: /my-songs"

    def test_unauthorized(self) -> None:
        response = httpx.Response(401, json={"message": "expired token"})
        assert extract_error_detail(response, "/my-songs") == "Authentication failed: expired token"

    def test_prefers_detail_over_message_over_error(self) -> None:
        response = httpx.Response(
            400, json={"error": "c", "message": "b", "detail": "a"}
        )
        assert extract_error_detail(response, "/upload") == "a"

        response = httpx.Response(400, json={"error": "c"})
        assert extract_error_detail(response, "/upload") == "c"

    def test_unstructured_json_is_dumped(self) -> None:
        response = httpx.Response(422, json={"field": "stems"})
        assert extract_error_detail(response, "/upload") == '{"field": "stems"}'

    def test_plain_text_body(self) -> None:
        response = httpx.Response(400, text="File too large")
        assert extract_error_detail(response, "/upload") == "File too large"

    def test_empty_body_falls_back_to_status(self) -> None:
        response = httpx.Response(418)
        assert extract_error_detail(response, "/upload") == "HTTP 418"


class TestBackendClient:
    """Tests for request construction and error mapping."""

    @pytest.mark.anyio
    async def test_list_songs_sends_bearer_token(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"songs": [], "uid": "user-1"})

        client = make_client(handler)
        payload = await client.list_songs()
        await client.aclose()

        assert payload == {"songs": [], "uid": "user-1"}
        assert seen[0].headers["Authorization"] == "Bearer token-123"
        assert seen[0].url.path == "/my-songs"

    @pytest.mark.anyio
    async def test_authenticated_call_without_user_raises(self) -> None:
        client = make_client(lambda request: httpx.Response(200, json={}), user_id="")

        with pytest.raises(NotAuthenticatedError):
            await client.list_songs()
        await client.aclose()

    @pytest.mark.anyio
    async def test_error_status_raises_api_error(self) -> None:
        client = make_client(lambda request: httpx.Response(500, json={"detail": "db down"}))

        with pytest.raises(ApiError) as exc_info:
            await client.delete_song("abc")
        await client.aclose()

        assert exc_info.value.status == 500
        assert "db down" in str(exc_info.value)

    @pytest.mark.anyio
    async def test_connection_error_names_backend(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(ApiError) as exc_info:
            await client.list_songs()
        await client.aclose()

        assert exc_info.value.status is None
        assert "Cannot connect to backend server at http://backend.test" in str(exc_info.value)

    @pytest.mark.anyio
    async def test_upload_json_response(self, song_file) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"song_id": "s1", "files": ["vocals.mp3"]})

        client = make_client(handler, user_id="")
        result = await client.upload(song_file, terms_accepted=True, stems=["vocals", "bass"])
        await client.aclose()

        assert result.kind == "json"
        assert result.data["song_id"] == "s1"
        body = seen[0].content
        assert b'name="tos_agreed"' in body and b"true" in body
        assert b"vocals,bass" in body
        assert "Authorization" not in seen[0].headers

    @pytest.mark.anyio
    async def test_upload_archive_response(self, song_file) -> None:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("vocals.mp3", b"v")
        data = buffer.getvalue()

        client = make_client(
            lambda request: httpx.Response(
                200,
                content=data,
                headers={"content-type": "application/zip", "X-Cache-Key": "cache-9"},
            )
        )
        result = await client.upload(song_file, terms_accepted=True)
        await client.aclose()

        assert result.kind == "archive"
        assert result.archive == data
        assert result.cache_key == "cache-9"

    @pytest.mark.anyio
    async def test_presigned_url(self) -> None:
        client = make_client(
            lambda request: httpx.Response(200, json={"url": "https://cdn.example/x"})
        )
        url = await client.presigned_url("s1", "vocals.mp3")
        await client.aclose()
        assert url == "https://cdn.example/x"

    def test_stem_route_and_transcribe_url(self) -> None:
        client = make_client(lambda request: httpx.Response(200))
        assert client.stem_route("k1", "bass.mp3") == "http://backend.test/stems/k1/bass.mp3"
        assert client.transcribe_url() == "ws://backend.test/ws/transcribe"
