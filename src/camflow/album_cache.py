"""Persistent cache of Google Photos album title -> album ID."""

import asyncio
import json
import logging
from pathlib import Path

from camflow.rate_limiter import RateLimiter
from camflow.services import AlbumsService

ALBUM_CACHE_FILE = "google_photos_album_cache.json"


def album_cache_path(cache_dir: Path) -> Path:
    """Get the path of the album cache file inside ``cache_dir``."""
    return Path(cache_dir) / ALBUM_CACHE_FILE


class AlbumCache:
    """Maps album titles to album IDs, persisted as JSON.

    Cached IDs are trusted without checking that the remote album still
    exists or still carries the same title.
    """

    def __init__(
        self,
        path: Path,
        albums: dict[str, str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize album cache.

        Args:
            path: File the cache is saved to
            albums: Initial title -> ID mapping
            logger: Logger to report through (defaults to the module logger)
        """
        self.path = Path(path)
        self._albums: dict[str, str] = dict(albums or {})
        self._lock = asyncio.Lock()
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def load(cls, path: Path, logger: logging.Logger | None = None) -> "AlbumCache":
        """Load the album cache from disk.

        A missing file gives an empty cache. A corrupt file also gives an
        empty cache, so the next save overwrites it.

        Args:
            path: Path of the cache file
            logger: Logger to report through

        Returns:
            The loaded AlbumCache

        Raises:
            OSError: If the file exists but cannot be read
        """
        log = logger or logging.getLogger(__name__)
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            log.debug(f"No album cache at {path}, starting empty")
            return cls(path, logger=logger)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning(f"Album cache {path} is corrupt, starting empty: {e}")
            return cls(path, logger=logger)

        if not isinstance(data, dict):
            log.warning(f"Album cache {path} is not a JSON object, starting empty")
            return cls(path, logger=logger)

        albums = data.get("albums")
        if albums is None:
            log.warning(f"Album cache {path} has no 'albums' mapping, starting empty")
            return cls(path, logger=logger)
        if not isinstance(albums, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in albums.items()
        ):
            log.warning(f"Album cache {path} has a malformed 'albums' mapping, starting empty")
            return cls(path, logger=logger)

        log.debug(f"Loaded {len(albums)} album(s) from {path}")
        return cls(path, albums, logger=logger)

    def save(self) -> None:
        """Write the cache to disk as pretty-printed JSON, replacing the old file."""
        self._write(self._albums)

    def _write(self, albums: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"albums": albums}, f, indent=2)
            f.write("\n")
        self._logger.debug(f"Saved {len(albums)} album(s) to {self.path}")

    def get(self, title: str) -> str | None:
        return self._albums.get(title)

    @property
    def albums(self) -> dict[str, str]:
        """A copy of the title -> ID mapping."""
        return dict(self._albums)

    def __contains__(self, title: object) -> bool:
        return title in self._albums

    def __len__(self) -> int:
        return len(self._albums)

    async def resolve_or_create(
        self,
        titles: list[str],
        albums_service: AlbumsService,
        limiter: RateLimiter,
    ) -> list[str]:
        """Resolve album titles to IDs, creating albums that don't exist.

        Cached titles are answered locally. For the rest, albums are listed
        once; the first listed album with a matching title is adopted. Titles
        still missing are created in request order. The cache is saved when
        new mappings were added.

        Args:
            titles: Album titles to resolve
            albums_service: Service used to list and create albums
            limiter: Rate limiter awaited before every remote call

        Returns:
            One album ID per title, in the order of ``titles``

        Raises:
            Exception: Any error from listing or creating albums. Nothing
                resolved by this call is cached in that case.
        """
        async with self._lock:
            missing = [t for t in dict.fromkeys(titles) if t not in self._albums]
            if not missing:
                return [self._albums[t] for t in titles]

            self._logger.info(f"Album(s) not cached, fetching from Google Photos: {missing}")
            resolved: dict[str, str] = {}

            await limiter.wait()
            remote_albums = await albums_service.list_albums()
            for album in remote_albums:
                if album.title in missing and album.title not in resolved:
                    self._logger.info(f"Found album online: '{album.title}' (ID: {album.id})")
                    resolved[album.title] = album.id

            for title in missing:
                if title in resolved:
                    continue
                self._logger.info(f"Album '{title}' not found in cache or online, creating it")
                await limiter.wait()
                album = await albums_service.create_album(title)
                self._logger.info(f"Created album '{album.title}' (ID: {album.id})")
                resolved[title] = album.id

            updated = {**self._albums, **resolved}
            self._write(updated)
            self._albums = updated
            return [self._albums[t] for t in titles]
