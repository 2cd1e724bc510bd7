"""Upload of queued media items to Google Photos."""

import logging
import math
from collections.abc import Callable

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from camflow.album_cache import AlbumCache
from camflow.config import LocalMediaConfig
from camflow.models import ItemResult, ItemStatus, QueuedItem, UploadSummary
from camflow.rate_limiter import RateLimiter
from camflow.services import AlbumsService, MediaItemsService, UploadService
from camflow.utils import cleanup_empty_parent_dirs, move_to_uploaded, scan_upload_queue


class AlbumResolutionError(Exception):
    """Raised when target albums cannot be looked up or created."""

    pass


class UploadError(Exception):
    """Raised when the bytes of a media file cannot be uploaded."""

    pass


def make_progress(console: Console | None = None) -> Progress:
    """Create a byte-weighted progress bar."""
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=20),
        DownloadColumn(binary_units=True),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def _gib(size: int) -> float:
    return math.ceil(size / 1024 / 1024 / 1024)


class MediaUploader:
    """Uploads every file in an upload queue and files it into albums.

    The queue directory is the durable state: files only leave it once
    uploaded, created and added to every target album, so rerunning
    after a failure picks up whatever is left.
    """

    def __init__(
        self,
        uploader: UploadService,
        media_items: MediaItemsService,
        albums: AlbumsService,
        album_cache: AlbumCache,
        limiter: RateLimiter | None = None,
        console: Console | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize media uploader.

        Args:
            uploader: Service uploading raw bytes
            media_items: Service creating library media items
            albums: Service for album lookup, creation and membership
            album_cache: Cache of album title -> ID
            limiter: Rate limiter shared by every remote call
            console: Console the progress bar renders to
            logger: Logger to report through (defaults to the module logger)
        """
        self.uploader = uploader
        self.media_items = media_items
        self.albums = albums
        self.album_cache = album_cache
        self.limiter = limiter or RateLimiter()
        self.console = console
        self.logger = logger or logging.getLogger(__name__)

    async def resolve_target_albums(self, default_album: str) -> dict[str, str]:
        """Resolve the configured default album into an album ID -> title map.

        An empty or blank title means library-only uploads.

        Raises:
            AlbumResolutionError: If listing or creating albums fails
        """
        if not default_album:
            self.logger.warning("No default album specified in config, files will only be uploaded to the library")
            return {}
        title = default_album.strip()
        if not title:
            self.logger.warning("Default album in config contains only whitespace, files will only be uploaded to the library")
            return {}

        try:
            album_ids = await self.album_cache.resolve_or_create([title], self.albums, self.limiter)
        except Exception as e:
            raise AlbumResolutionError(f"Failed to resolve or create album ID for title '{title}': {e}") from e

        self.logger.debug(f"Target album IDs resolved: {album_ids} for '{title}'")
        return {album_id: title for album_id in album_ids if album_id}

    async def upload_media_items(
        self,
        local_config: LocalMediaConfig,
        default_album: str,
        keep_queued: bool = False,
        item_type_plural: str = "items",
    ) -> UploadSummary:
        """Upload all files in the upload queue.

        Args:
            local_config: Queue and uploaded directories
            default_album: Album every item is added to ("" for none)
            keep_queued: Leave uploaded files in the queue
            item_type_plural: Name of the media kind, for messages

        Returns:
            Summary of the processed items

        Raises:
            QueueScanError: If the queue root cannot be read
            AlbumResolutionError: If target albums cannot be resolved
            UploadError: If the bytes of a file cannot be uploaded
            RelocationError: If an uploaded file cannot be moved
        """
        queue_root = local_config.upload_queue_root
        summary = UploadSummary()

        if not queue_root.exists():
            self.logger.info(f"Upload queue directory {queue_root} does not exist, nothing to upload")
            return summary

        items, total_size = scan_upload_queue(queue_root)
        if not items:
            self.logger.info(f"No {item_type_plural} found in upload queue directory {queue_root}")
            return summary
        self.logger.info(f"Found {len(items)} {item_type_plural} to upload (~{_gib(total_size):.0f} GiB)")

        target_albums = await self.resolve_target_albums(default_album)

        with make_progress(self.console) as progress:
            task = progress.add_task(f"Uploading {item_type_plural}", total=total_size)

            def advance(size: int) -> None:
                progress.advance(task, size)
                summary.processed_bytes += size

            for item in items:
                progress.update(task, description=f"Uploading {item.path.name}")
                result = await self.upload_media_item(
                    item, local_config, target_albums, keep_queued, advance
                )
                summary.results.append(result)

            progress.update(task, description=f"Uploaded {item_type_plural}")

        self.logger.info(
            f"Finished uploading {item_type_plural}: "
            f"{summary.count(ItemStatus.RELOCATED)} moved, "
            f"{summary.count(ItemStatus.KEPT)} kept, "
            f"{summary.remaining - summary.count(ItemStatus.KEPT)} left in queue after errors"
        )
        return summary

    async def upload_media_item(
        self,
        item: QueuedItem,
        local_config: LocalMediaConfig,
        target_albums: dict[str, str],
        keep_queued: bool = False,
        advance: Callable[[int], None] | None = None,
    ) -> ItemResult:
        """Upload one file, create its media item, add it to albums and move it.

        Media item creation and album-add failures are logged and leave the
        file queued for the next run. ``advance`` is called with the file
        size exactly once, whatever happens.

        Raises:
            UploadError: If the bytes cannot be uploaded
            RelocationError: If the file cannot be moved out of the queue
            DatePrefixError: If a flat-queue name has no date prefix
        """
        name = item.path.name
        try:
            await self.limiter.wait()
            try:
                upload_token = await self.uploader.upload_file(item.path)
            except Exception as e:
                raise UploadError(f"Failed to upload file {name}: {e}") from e

            await self.limiter.wait()
            try:
                media_item = await self.media_items.create_media_item(upload_token, name)
            except Exception as e:
                self.logger.error(f"Error creating media item for {name}, skipping: {e}")
                return ItemResult(
                    path=item.path,
                    status=ItemStatus.CREATE_FAILED,
                    error_message=f"Media item creation failed: {e}",
                )
            self.logger.debug(f"Created media item {media_item.id} for {name}")

            failed_albums = await self._add_to_albums(name, media_item.id, target_albums)
            if failed_albums:
                if not keep_queued:
                    self.logger.error(
                        f"{name} was not added to all target albums, leaving it in the upload queue"
                    )
                return ItemResult(
                    path=item.path,
                    status=ItemStatus.ALBUM_ADD_FAILED,
                    media_item_id=media_item.id,
                    error_message=f"Failed to add to album(s): {', '.join(failed_albums)}",
                )

            if keep_queued:
                self.logger.debug(f"Keeping {item.path} in upload queue")
                return ItemResult(path=item.path, status=ItemStatus.KEPT, media_item_id=media_item.id)

            destination = move_to_uploaded(
                item,
                local_config.upload_queue_root,
                local_config.uploaded_root,
                local_config.queue_is_flat,
            )
            try:
                cleanup_empty_parent_dirs(item.path, local_config.upload_queue_root)
            except OSError as e:
                self.logger.error(f"Cleanup of upload queue directories failed for {item.path}: {e}")

            return ItemResult(
                path=item.path,
                status=ItemStatus.RELOCATED,
                media_item_id=media_item.id,
                destination=destination,
            )
        finally:
            if advance is not None:
                advance(item.size)

    async def _add_to_albums(self, name: str, media_item_id: str, target_albums: dict[str, str]) -> list[str]:
        """Add a media item to each target album; return titles that failed."""
        failed: list[str] = []
        added = 0
        for album_id, title in sorted(target_albums.items(), key=lambda a: (a[1], a[0])):
            await self.limiter.wait()
            try:
                await self.albums.add_media_items(album_id, [media_item_id])
            except Exception as e:
                self.logger.error(
                    f"Error adding media item {media_item_id} to album '{title}' ({album_id}): {e}"
                )
                failed.append(title)
            else:
                self.logger.debug(f"Added media item {media_item_id} to album '{title}'")
                added += 1

        if failed:
            self.logger.error(f"Failed to add {name} to {len(failed)} album(s): {failed}")
        elif added:
            self.logger.debug(f"Added {name} to all {added} target album(s)")
        return failed


def mark_media_uploaded(
    local_config: LocalMediaConfig,
    console: Console | None = None,
    logger: logging.Logger | None = None,
) -> int:
    """Move every queued file to the uploaded tree without uploading it.

    Returns:
        Number of files moved

    Raises:
        QueueScanError: If the queue root cannot be read
        RelocationError: If a file cannot be moved
    """
    log = logger or logging.getLogger(__name__)
    queue_root = local_config.upload_queue_root
    if not queue_root.exists():
        log.info(f"Upload queue directory {queue_root} does not exist, nothing to move")
        return 0

    items, total_size = scan_upload_queue(queue_root)
    if not items:
        log.info(f"No media items found in upload queue directory {queue_root}")
        return 0
    log.info(f"Found {len(items)} file(s) to move (~{_gib(total_size):.0f} GiB)")

    with make_progress(console) as progress:
        task = progress.add_task("Moving", total=total_size)
        for item in items:
            move_to_uploaded(item, queue_root, local_config.uploaded_root, local_config.queue_is_flat)
            try:
                cleanup_empty_parent_dirs(item.path, queue_root)
            except OSError as e:
                log.error(f"Cleanup of upload queue directories failed for {item.path}: {e}")
            progress.advance(task, item.size)

    log.debug(f"Finished moving {len(items)} file(s) to {local_config.uploaded_root}")
    return len(items)
