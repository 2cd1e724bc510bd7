"""Pytest configuration and shared fixtures."""

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from camflow.album_cache import AlbumCache, album_cache_path
from camflow.config import LocalMediaConfig
from camflow.models import Album, MediaItem
from camflow.rate_limiter import RateLimiter


class FakePhotos:
    """In-memory stand-in for the Google Photos services.

    Every method is an AsyncMock so tests can inspect calls or swap in
    side effects.
    """

    def __init__(self) -> None:
        self.remote_albums: list[Album] = []
        self._created = 0
        self._tokens = 0
        self._items = 0
        self.upload_file = AsyncMock(side_effect=self._upload_file)
        self.create_media_item = AsyncMock(side_effect=self._create_media_item)
        self.list_albums = AsyncMock(side_effect=self._list_albums)
        self.create_album = AsyncMock(side_effect=self._create_album)
        self.add_media_items = AsyncMock(return_value=None)

    async def _upload_file(self, path: Path) -> str:
        self._tokens += 1
        return f"T{self._tokens}"

    async def _create_media_item(self, upload_token: str, filename: str) -> MediaItem:
        self._items += 1
        return MediaItem(id=f"M{self._items}", filename=filename)

    async def _list_albums(self) -> list[Album]:
        return list(self.remote_albums)

    async def _create_album(self, title: str) -> Album:
        self._created += 1
        album = Album(id=f"A{self._created}", title=title)
        self.remote_albums.append(album)
        return album


@pytest.fixture
def photos() -> FakePhotos:
    """Return fake Google Photos services."""
    return FakePhotos()


@pytest.fixture
def limiter() -> RateLimiter:
    """Return a rate limiter that never blocks in tests."""
    return RateLimiter(rate=10_000, burst=10_000)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def album_cache(cache_dir: Path) -> AlbumCache:
    """Return an empty album cache stored in the temp cache dir."""
    return AlbumCache.load(album_cache_path(cache_dir))


@pytest.fixture
def flat_queue(tmp_path: Path) -> LocalMediaConfig:
    """Create a flat photo queue.

    Structure:
        photos-queue/
            2024-05-15-IMG_0001.JPG
            2024-05-16-IMG_0002.JPG
    """
    queue = tmp_path / "photos-queue"
    queue.mkdir()
    (queue / "2024-05-15-IMG_0001.JPG").write_bytes(b"jpeg-one")
    (queue / "2024-05-16-IMG_0002.JPG").write_bytes(b"jpeg-two!")
    return LocalMediaConfig(
        upload_queue_root=queue,
        uploaded_root=tmp_path / "photos-uploaded",
        queue_is_flat=True,
    )


@pytest.fixture
def tree_queue(tmp_path: Path) -> LocalMediaConfig:
    """Create a hierarchical video queue.

    Structure:
        videos-queue/
            2024/05/15/MVI_0001.MP4
            2024/05/16/MVI_0002.MP4
    """
    queue = tmp_path / "videos-queue"
    for day, name in (("15", "MVI_0001.MP4"), ("16", "MVI_0002.MP4")):
        day_dir = queue / "2024" / "05" / day
        day_dir.mkdir(parents=True)
        (day_dir / name).write_bytes(b"video " + name.encode())
    return LocalMediaConfig(
        upload_queue_root=queue,
        uploaded_root=tmp_path / "videos-uploaded",
        queue_is_flat=False,
    )


@pytest.fixture
def credentials() -> SimpleNamespace:
    """Return fake, always-valid OAuth credentials."""
    return SimpleNamespace(token="test_access_token_123", valid=True, refresh=lambda request: None)
