"""Google Photos Library API client with retry logic using httpx for async HTTP calls."""

import asyncio
import logging
import mimetypes
from collections.abc import AsyncIterator
from contextlib import aclosing
from pathlib import Path
from typing import Any, Protocol

import httpx
from google.auth.transport.requests import Request
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from camflow.models import Album, MediaItem

logger = logging.getLogger(__name__)

# Google Photos Library API base URL
PHOTOS_API_BASE_URL = "https://photoslibrary.googleapis.com/v1"

UPLOAD_CHUNK_SIZE = 1024 * 1024
ALBUMS_PAGE_SIZE = 50


class PhotosAPIError(Exception):
    """Base exception for Google Photos API errors."""

    pass


class RateLimitError(PhotosAPIError):
    """Exception raised when hitting rate limits."""

    pass


class ServerError(PhotosAPIError):
    """Exception raised for 5xx server errors."""

    pass


class Credentials(Protocol):
    """The parts of google.oauth2.credentials.Credentials the client uses."""

    token: str | None

    @property
    def valid(self) -> bool: ...

    def refresh(self, request: Any) -> None: ...


_retry = retry(
    retry=retry_if_exception_type((RateLimitError, ServerError)),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(5),
    reraise=True,
)


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    with open(path, "rb") as f:
        while chunk := await asyncio.to_thread(f.read, UPLOAD_CHUNK_SIZE):
            yield chunk


class GooglePhotosClient:
    """Client for the Google Photos Library API using httpx.

    Implements UploadService, MediaItemsService and AlbumsService.
    """

    def __init__(self, credentials: Credentials, base_url: str = PHOTOS_API_BASE_URL) -> None:
        """Initialize Google Photos API client.

        Args:
            credentials: OAuth credentials, refreshed when no longer valid
            base_url: Library API base URL
        """
        self.credentials = credentials
        self.base_url = base_url
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GooglePhotosClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, write=300.0))
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
        self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the httpx AsyncClient instance.

        Returns:
            The httpx.AsyncClient instance

        Raises:
            RuntimeError: If client is used outside of async context manager
        """
        if self._client is None:
            raise RuntimeError("Client must be used within async context manager")
        return self._client

    async def _auth_headers(self) -> dict[str, str]:
        if not self.credentials.valid:
            logger.debug("Refreshing Google Photos access token")
            await asyncio.to_thread(self.credentials.refresh, Request())
        return {"Authorization": f"Bearer {self.credentials.token}"}

    async def _request_json(self, method: str, path: str, context: str, **kwargs: Any) -> dict[str, Any]:
        client = self.client
        headers = await self._auth_headers()
        try:
            response = await client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Network error while {context}, will retry: {e}")
            raise ServerError(f"Network error: {e}") from e

        result = self._parse_json_response(response, context)
        if response.status_code >= 400:
            self._handle_error_response(response.status_code, result, context)
        return result

    @_retry
    async def upload_file(self, path: Path) -> str:
        """Upload the bytes of a media file.

        Args:
            path: Path to the media file

        Returns:
            Upload token

        Raises:
            FileNotFoundError: If the file doesn't exist
            PhotosAPIError: If the upload fails
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Media file not found: {path}")

        client = self.client
        mime_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        headers = await self._auth_headers()
        headers.update(
            {
                "Content-Type": "application/octet-stream",
                "Content-Length": str(path.stat().st_size),
                "X-Goog-Upload-Content-Type": mime_type,
                "X-Goog-Upload-File-Name": path.name,
                "X-Goog-Upload-Protocol": "raw",
            }
        )
        context = f"uploading {path.name}"
        try:
            async with aclosing(_iter_file(path)) as body:
                response = await client.post(f"{self.base_url}/uploads", headers=headers, content=body)
        except httpx.RequestError as e:
            logger.warning(f"Network error while {context}, will retry: {e}")
            raise ServerError(f"Network error: {e}") from e

        if response.status_code >= 400:
            result = self._parse_json_response(response, context)
            self._handle_error_response(response.status_code, result, context)
        upload_token = response.text.strip()
        if not upload_token:
            raise PhotosAPIError(f"Empty upload token while {context}")

        logger.debug(f"Uploaded bytes of {path.name}")
        return upload_token

    @_retry
    async def create_media_item(self, upload_token: str, filename: str) -> MediaItem:
        """Create a library media item from an upload token.

        Args:
            upload_token: Token returned by upload_file
            filename: File name shown in the library

        Returns:
            The created media item

        Raises:
            PhotosAPIError: If creation fails
        """
        body = {
            "newMediaItems": [
                {"simpleMediaItem": {"uploadToken": upload_token, "fileName": filename}}
            ]
        }
        context = f"creating media item for {filename}"
        result = await self._request_json("POST", "/mediaItems:batchCreate", context, json=body)

        new_items = result.get("newMediaItemResults", [])
        if not new_items:
            raise PhotosAPIError(f"No media item returned while {context}")
        new_item = new_items[0]
        status = new_item.get("status", {})
        if status.get("code", 0) != 0:
            raise PhotosAPIError(
                f"Google Photos refused media item while {context}: {status.get('message', 'unknown error')}"
            )

        media = new_item.get("mediaItem", {})
        media_item = MediaItem(id=media.get("id", ""), filename=media.get("filename", filename))
        logger.debug(f"Created media item {media_item.id} for {filename}")
        return media_item

    @_retry
    async def _list_albums_page(self, page_token: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {"pageSize": ALBUMS_PAGE_SIZE}
        if page_token:
            params["pageToken"] = page_token
        return await self._request_json("GET", "/albums", "listing albums", params=params)

    async def list_albums(self) -> list[Album]:
        """List all albums, following pagination.

        Raises:
            PhotosAPIError: If listing fails
        """
        albums: list[Album] = []
        page_token: str | None = None
        while True:
            data = await self._list_albums_page(page_token)
            for album in data.get("albums", []):
                albums.append(Album(id=album["id"], title=album.get("title", "")))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        logger.debug(f"Listed {len(albums)} album(s)")
        return albums

    @_retry
    async def create_album(self, title: str) -> Album:
        """Create a new album.

        Args:
            title: Album title

        Returns:
            The created album

        Raises:
            PhotosAPIError: If album creation fails
        """
        result = await self._request_json(
            "POST", "/albums", f"creating album '{title}'", json={"album": {"title": title}}
        )
        album = Album(id=result["id"], title=result.get("title", title))
        logger.info(f"Created album '{album.title}' with ID: {album.id}")
        return album

    @_retry
    async def add_media_items(self, album_id: str, media_item_ids: list[str]) -> None:
        """Add media items to an album.

        Raises:
            PhotosAPIError: If the items cannot be added
        """
        await self._request_json(
            "POST",
            f"/albums/{album_id}:batchAddMediaItems",
            f"adding {len(media_item_ids)} item(s) to album {album_id}",
            json={"mediaItemIds": media_item_ids},
        )

    def _parse_json_response(self, response: httpx.Response, context: str) -> dict[str, Any]:
        """Parse JSON response, handling non-JSON responses gracefully.

        Args:
            response: The httpx Response object
            context: Description of what operation was attempted

        Returns:
            Parsed JSON as a dictionary

        Raises:
            ServerError: If response is 5xx with non-JSON body
            PhotosAPIError: If response has invalid JSON for non-5xx status
        """
        if not response.content:
            if response.status_code >= 500:
                raise ServerError(f"Server error {response.status_code} with empty body while {context}")
            if response.status_code >= 400:
                raise PhotosAPIError(f"Google Photos API error {response.status_code} while {context}")
            return {}
        try:
            return response.json()
        except ValueError:
            # Non-JSON response (e.g., HTML error page during outages)
            if response.status_code >= 500:
                logger.warning(f"Server returned non-JSON response while {context}, will retry")
                raise ServerError(f"Server error {response.status_code}: {response.text[:200]}")
            if response.status_code == 429:
                raise RateLimitError(f"Google Photos API rate limit exceeded: {response.text[:200]}")
            raise PhotosAPIError(f"Invalid API response while {context}: {response.text[:200]}")

    def _handle_error_response(self, status_code: int, result: dict[str, Any], context: str) -> None:
        """Handle error responses from the Library API.

        Args:
            status_code: HTTP status code
            result: Response JSON body
            context: Description of what operation failed

        Raises:
            RateLimitError: If rate limit is exceeded
            ServerError: If server error occurs
            PhotosAPIError: For other API errors
        """
        error = result.get("error", {})
        if not isinstance(error, dict):
            error = {"message": str(error)}
        error_status = error.get("status", "")
        error_message = error.get("message", str(result))

        if status_code == 429 or error_status == "RESOURCE_EXHAUSTED":
            logger.warning(f"Rate limit exceeded while {context}, will retry")
            raise RateLimitError(f"Google Photos API rate limit exceeded: {error_message}")

        if status_code >= 500:
            logger.warning(f"Server error while {context}, will retry")
            raise ServerError(f"Google Photos API server error: {error_message}")

        # Other errors - don't retry
        error_msg = f"Google Photos API error while {context}: {error_message}"
        logger.error(error_msg)
        raise PhotosAPIError(error_msg)
