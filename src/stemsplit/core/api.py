"""
Backend API client.

Talks to the splitting/storage backend: uploads, per-user song listing,
deletions, presigned URLs and archive downloads. All calls are async
(httpx.AsyncClient) and authenticated calls carry the current user's
bearer token.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Union

import httpx
from loguru import logger

from .config import ApiConfig, transcribe_url
from .identity import IdentityProvider


class ApiError(Exception):
    """Raised when a backend request fails (transport or non-success status)."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class NotAuthenticatedError(ApiError):
    """Raised when an authenticated call is attempted without a user."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, status=401)


class UploadResult(NamedTuple):
    """Successful /upload response in one of its two shapes."""

    kind: str  # 'json' (remote-storage mode) or 'archive' (local-processing mode)
    data: Optional[Dict[str, Any]] = None
    archive: Optional[bytes] = None
    cache_key: Optional[str] = None


def extract_error_detail(response: httpx.Response, path: str) -> str:
    """Build a human-readable error message from a failed response.

    Prefers structured detail (detail -> message -> error) over the raw body,
    and the raw body over a bare status code.
    """
    detail = f"HTTP {response.status_code}"
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = (
                body.get("detail")
                or body.get("message")
                or body.get("error")
                or json.dumps(body)
            )
        else:
            detail = json.dumps(body)
    except ValueError:
        if response.text:
            detail = response.text

    if not isinstance(detail, str):
        detail = json.dumps(detail)

    if response.status_code == 500:
        return f"Backend server error: {detail}"
    if response.status_code == 404:
        return f"Endpoint not found: {path}"
    if response.status_code == 401:
        return f"Authentication failed: {detail}"
    return detail


class BackendClient:
    """Async client for the splitting backend."""

    def __init__(
        self,
        api_config: ApiConfig,
        identity: IdentityProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_config = api_config
        self.identity = identity
        self.base_url = api_config.base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=api_config.timeout_seconds,
            transport=transport,
        )

    def set_identity(self, identity: IdentityProvider) -> None:
        self.identity = identity

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _auth_headers(self, required: bool = True) -> Dict[str, str]:
        user = self.identity.current_user()
        if not user:
            if required:
                raise NotAuthenticatedError()
            return {}

        try:
            token = await user.get_token()
        except Exception as e:
            if required:
                raise NotAuthenticatedError(f"Failed to get auth token: {e}") from e
            logger.warning(f"Failed to get auth token, continuing anonymously: {e}")
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = await self._auth_headers(required=authenticated)
        headers.update(kwargs.pop("headers", {}))

        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"API request failed: {method} {path}: {e}")
            raise ApiError(
                f"Cannot connect to backend server at {self.base_url}: {e}"
            ) from e

        if response.is_error:
            message = extract_error_detail(response, path)
            logger.error(f"API request failed: {method} {path} {response.status_code} {message}")
            raise ApiError(message, status=response.status_code)

        return response

    # Public endpoints

    async def upload(
        self,
        file_path: Union[str, Path],
        terms_accepted: bool,
        stems: Optional[List[str]] = None,
        recaptcha_token: Optional[str] = None,
    ) -> UploadResult:
        """POST /upload. Authentication is optional for this endpoint."""
        file_path = Path(file_path)
        data = {"tos_agreed": "true" if terms_accepted else "false"}
        if stems:
            data["stems"] = ",".join(stems)
        if recaptcha_token:
            data["recaptcha_token"] = recaptcha_token

        files = {"file": (file_path.name, file_path.read_bytes(), "audio/mpeg")}

        response = await self._request(
            "POST", "/upload", authenticated=False, data=data, files=files
        )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return UploadResult(kind="json", data=response.json())

        return UploadResult(
            kind="archive",
            archive=response.content,
            cache_key=response.headers.get("X-Cache-Key") or None,
        )

    async def list_songs(self) -> Dict[str, Any]:
        """GET /my-songs -> {songs: [...], uid}."""
        response = await self._request("GET", "/my-songs")
        return response.json()

    async def delete_song(self, song_id: str) -> None:
        await self._request("DELETE", f"/songs/{song_id}")

    async def delete_all_songs(self) -> None:
        await self._request("DELETE", "/songs")

    async def presigned_url(self, song_id: str, filename: str) -> str:
        """POST /presigned-url -> short-lived signed URL for one stem file."""
        response = await self._request(
            "POST",
            "/presigned-url",
            json={"song_id": song_id, "filename": filename},
        )
        return response.json()["url"]

    async def download_song_archive(self, song_id: str) -> bytes:
        response = await self._request("GET", f"/songs/{song_id}/zip")
        return response.content

    async def download_cache_archive(self, cache_key: str) -> bytes:
        response = await self._request("GET", f"/cache/{cache_key}", authenticated=False)
        return response.content

    async def fetch_bytes(self, url: str) -> bytes:
        """Fetch an absolute URL (signed URL or stable stem route)."""
        return (await self._request("GET", url, authenticated=False)).content

    def stem_route(self, cache_key: str, filename: str) -> str:
        """Stable backend route serving one stem of a cached upload."""
        return f"{self.base_url}/stems/{cache_key}/{filename}"

    def transcribe_url(self) -> str:
        return transcribe_url(self.api_config)
