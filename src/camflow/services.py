"""Capability interfaces for the Google Photos operations camflow uses.

The real ``GooglePhotosClient`` implements all three; tests substitute
doubles for any of them.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable

from camflow.models import Album, MediaItem


@runtime_checkable
class UploadService(Protocol):
    """Uploads raw media bytes."""

    async def upload_file(self, path: Path) -> str:
        """Upload the file at ``path`` and return its upload token."""
        ...


@runtime_checkable
class MediaItemsService(Protocol):
    """Creates library media items from upload tokens."""

    async def create_media_item(self, upload_token: str, filename: str) -> MediaItem:
        """Create a media item from a previously uploaded token."""
        ...


@runtime_checkable
class AlbumsService(Protocol):
    """Album listing, creation and membership."""

    async def list_albums(self) -> list[Album]:
        """Return every album visible to the application."""
        ...

    async def create_album(self, title: str) -> Album:
        """Create an album titled ``title``."""
        ...

    async def add_media_items(self, album_id: str, media_item_ids: list[str]) -> None:
        """Add existing media items to an album."""
        ...
