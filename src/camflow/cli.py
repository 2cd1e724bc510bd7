"""Command-line interface for camflow."""

import asyncio
import logging
import os
import platform
import sys
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from camflow import __version__
from camflow.album_cache import AlbumCache, album_cache_path
from camflow.api_client import GooglePhotosClient
from camflow.auth import load_credentials
from camflow.config import CamflowConfig, ConfigError, default_cache_dir, load_config
from camflow.importer import import_media
from camflow.models import ItemStatus, UploadSummary
from camflow.uploader import MediaUploader, mark_media_uploaded

app = typer.Typer(
    name="camflow",
    help="Manage camera media files: import from an SD card and upload to Google Photos",
    add_completion=False,
)
console = Console()

DEFAULT_SDCARD = Path("/Volumes/EOS_DIGITAL")


class State:
    config_path: Path | None = None
    cache_dir: Path = default_cache_dir()


state = State()


def setup_logging(verbose: bool) -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: Enable verbose (DEBUG) logging
    """
    verbose = verbose or bool(os.environ.get("DEBUG") or os.environ.get("VERBOSE"))
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
        force=True,
    )


def fail(message: str) -> NoReturn:
    console.print(f"[red]error: {message}[/red]")
    raise typer.Exit(1)


def get_config() -> CamflowConfig:
    """Load and validate the configuration, exiting on failure."""
    try:
        config = load_config(state.config_path)
        config.validate()
    except ConfigError as e:
        fail(f"failed to load config: {e}")
    return config


def plural(count: int) -> str:
    return "" if count == 1 else "s"


@app.callback()
def main(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the configuration file",
    ),
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        help="Dir to store cache files",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Manage camera media files."""
    setup_logging(verbose)
    state.config_path = config_path
    state.cache_dir = cache_dir or default_cache_dir()


@app.command()
def version() -> None:
    """Print the version number of camflow."""
    table = Table.grid(padding=(0, 2))
    table.add_row("Client:", "camflow")
    table.add_row("Version:", __version__)
    table.add_row("Python version:", platform.python_version())
    table.add_row("OS/Arch:", f"{sys.platform}/{platform.machine()}")
    console.print(table)


@app.command("import")
def import_command(
    src: Path = typer.Option(
        DEFAULT_SDCARD,
        "--src",
        "-s",
        help="Path to the source sdcard directory",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    keep: bool = typer.Option(False, "--keep", "-k", help="Keep the source files"),
    eject: bool = typer.Option(False, "--eject", help="Eject the sdcard after importing"),
) -> None:
    """Import media from the sdcard."""
    config = get_config()
    try:
        result = import_media(config, src, keep_src=keep, eject=eject, console=console)
    except Exception as e:
        logging.getLogger(__name__).debug("Import failed", exc_info=True)
        fail(str(e))

    n = len(result.src_entries)
    console.print(f"Imported from {n} dir{plural(n)}{':' if n else ''}")
    for entry in result.src_entries:
        console.print(
            f"\t{entry.relative_dir}: {entry.photo_count} photo{plural(entry.photo_count)}, "
            f"{entry.video_count} video{plural(entry.video_count)}"
        )
    if n:
        m = len(result.dst_entries)
        console.print(f"Imported photos into {m} dir{plural(m)}:")
        for dst in result.dst_entries:
            console.print(f"\t{dst.relative_dir}: {dst.photo_count} photo{plural(dst.photo_count)}")


async def async_upload(config: CamflowConfig, videos: bool, keep: bool) -> UploadSummary:
    """Authenticate and upload one media queue.

    Args:
        config: Validated configuration
        videos: Upload the video queue instead of the photo queue
        keep: Keep uploaded files in the queue

    Returns:
        Summary of the run
    """
    credentials = await asyncio.to_thread(load_credentials, config.google_photos, state.cache_dir)
    album_cache = AlbumCache.load(album_cache_path(state.cache_dir))

    if videos:
        local_config = config.local_videos
        default_album = config.google_photos.videos_default_album
        plural_name = "videos"
    else:
        local_config = config.local_photos
        default_album = config.google_photos.photos_default_album
        plural_name = "photos"

    async with GooglePhotosClient(credentials) as client:
        uploader = MediaUploader(client, client, client, album_cache, console=console)
        return await uploader.upload_media_items(local_config, default_album, keep, plural_name)


def run_upload(videos: bool, keep: bool) -> None:
    config = get_config()
    try:
        summary = asyncio.run(async_upload(config, videos, keep))
    except Exception as e:
        logging.getLogger(__name__).debug("Upload failed", exc_info=True)
        fail(str(e))

    failed = summary.remaining - summary.count(ItemStatus.KEPT)
    console.print("\n[bold]Upload Summary:[/bold]")
    console.print(f"  Total files: {len(summary.results)}")
    console.print(f"  [green]Uploaded and moved: {summary.count(ItemStatus.RELOCATED)}[/green]")
    if keep:
        console.print(f"  Uploaded and kept: {summary.count(ItemStatus.KEPT)}")
    if failed:
        console.print(f"  [red]Left in queue after errors: {failed}[/red]")
        for result in summary.results:
            if result.error_message:
                console.print(f"  - {result.path.name}: {result.error_message}")
        raise typer.Exit(1)


@app.command("upload-photos")
def upload_photos(
    keep: bool = typer.Option(False, "--keep", "-k", help="Keep photos in the upload queue after upload"),
) -> None:
    """Upload photos from the upload queue to Google Photos.

    Successfully uploaded photos are moved to the uploaded directory
    unless --keep is specified.
    """
    run_upload(videos=False, keep=keep)


@app.command("upload-videos")
def upload_videos(
    keep: bool = typer.Option(False, "--keep", "-k", help="Keep videos in the upload queue after upload"),
) -> None:
    """Upload videos from the upload queue to Google Photos.

    Successfully uploaded videos are moved to the uploaded directory
    unless --keep is specified.
    """
    run_upload(videos=True, keep=keep)


@app.command("mark-videos-uploaded")
def mark_videos_uploaded(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Move videos from the upload queue to the uploaded directory without uploading.

    This is a workaround for video uploads not preserving the video's timezone.
    """
    config = get_config()
    if not yes and not typer.confirm(
        "Confirm: move all videos in upload queue to the uploaded directory?", default=False
    ):
        console.print("Aborted")
        raise typer.Exit(0)

    try:
        moved = mark_media_uploaded(config.local_videos, console=console)
    except Exception as e:
        logging.getLogger(__name__).debug("Moving videos failed", exc_info=True)
        fail(str(e))
    console.print(f"Moved {moved} video{plural(moved)}")


if __name__ == "__main__":
    app()
