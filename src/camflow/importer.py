"""Import of camera media from an SD card."""

import logging
import subprocess
from collections import Counter
from datetime import datetime
from pathlib import Path

from rich.console import Console

from camflow.config import CamflowConfig
from camflow.models import (
    ImportDstDirEntry,
    ImportedFile,
    ImportResult,
    ImportSrcDirEntry,
    ItemType,
)
from camflow.uploader import make_progress
from camflow.utils import copy_file, free_space, remove_empty_dirs

logger = logging.getLogger(__name__)

PHOTO_EXTENSIONS = {".jpg", ".cr3"}
VIDEO_EXTENSIONS = {".mp4"}

GIB = 1 << 30


class InsufficientSpaceError(Exception):
    """Raised when the import target lacks room for the card's files."""

    pass


def is_dcim_media_dir(name: str) -> bool:
    """Whether a DCIM/ subdirectory name can hold camera media ("100CANON")."""
    return len(name) >= 4 and name[:3].isdigit()


def item_type_for(path: Path) -> ItemType | None:
    ext = path.suffix.lower()
    if ext in PHOTO_EXTENSIONS:
        return ItemType.PHOTO
    if ext in VIDEO_EXTENSIONS:
        return ItemType.VIDEO
    return None


def scan_dcim(dcim_dir: Path) -> tuple[list[Path], int]:
    """List importable files in the DCIM media directories and their total size."""
    files: list[Path] = []
    total_size = 0
    for media_dir in sorted(dcim_dir.iterdir()):
        if not media_dir.is_dir() or not is_dcim_media_dir(media_dir.name):
            continue
        for path in sorted(media_dir.rglob("*")):
            if path.is_file() and item_type_for(path) is not None:
                files.append(path)
                total_size += path.stat().st_size
    return files, total_size


def target_path(config: CamflowConfig, path: Path, item_type: ItemType, mtime: float) -> Path:
    """Where an imported file is copied to.

    Photos land in photos_to_process_root/YYYY/MM/DD/ and videos flat in the
    video upload queue; both are renamed with a YYYY-MM-DD- prefix.
    """
    taken = datetime.fromtimestamp(mtime)
    name = taken.strftime("%Y-%m-%d-") + path.name
    if item_type == ItemType.PHOTO:
        return Path(config.photos_to_process_root) / taken.strftime("%Y/%m/%d") / name
    return Path(config.videos_upload_queue_root) / name


def import_media(
    config: CamflowConfig,
    sdcard_dir: Path,
    keep_src: bool = False,
    eject: bool = False,
    console: Console | None = None,
) -> ImportResult:
    """Copy photos and videos off an SD card.

    Only files in DCIM media directories are imported. Modification
    times are preserved. Unless keep_src is set, source files are
    deleted and emptied card directories removed.

    Args:
        config: camflow configuration
        sdcard_dir: Mount point of the card
        keep_src: Leave the source files on the card
        eject: Eject the card afterwards (macOS /Volumes paths only)
        console: Console the progress bar renders to

    Returns:
        Counts of imported files per source and destination directory

    Raises:
        FileNotFoundError: If the card has no DCIM directory
        InsufficientSpaceError: If the photo target lacks space
    """
    src_dir = Path(sdcard_dir) / "DCIM"
    if not src_dir.is_dir():
        raise FileNotFoundError(f"No DCIM directory in {sdcard_dir}")

    files, total_size = scan_dcim(src_dir)
    logger.info(f"Found {len(files)} file(s) to import from {src_dir}")

    target_root = Path(config.photos_to_process_root)
    target_root.mkdir(parents=True, exist_ok=True)
    available = free_space(target_root)
    if total_size > available:
        raise InsufficientSpaceError(
            f"not enough space in {target_root}: need {(total_size - available) // GIB} GiB more: "
            f"{total_size // GIB} GiB needed, {available // GIB} GiB available"
        )

    src_photos: Counter[str] = Counter()
    src_videos: Counter[str] = Counter()
    dst_photos: Counter[str] = Counter()
    result = ImportResult()

    with make_progress(console) as progress:
        task = progress.add_task("Importing", total=total_size)
        for path in files:
            item_type = item_type_for(path)
            mtime = path.stat().st_mtime
            dst = target_path(config, path, item_type, mtime)
            src_rel = str(path.parent.relative_to(src_dir))

            # Assumes the camera never reuses a file name on the same day.
            copy_file(path, dst, mtime, lambda n: progress.advance(task, n))
            if item_type == ItemType.PHOTO:
                src_photos[src_rel] += 1
                dst_photos[str(dst.parent.relative_to(target_root))] += 1
            else:
                src_videos[src_rel] += 1
            result.imported_files.append(ImportedFile(path, dst, mtime, item_type))

            if not keep_src:
                path.unlink()

    result.src_entries = [
        ImportSrcDirEntry(d, src_photos[d], src_videos[d]) for d in sorted(src_photos | src_videos)
    ]
    result.dst_entries = [ImportDstDirEntry(d, n) for d, n in sorted(dst_photos.items())]

    if not keep_src:
        # Emptied dirs are removed so the camera restarts its folder numbering.
        remove_empty_dirs({f.parent for f in files})

    if eject:
        eject_card(Path(sdcard_dir))
    return result


def eject_card(sdcard_dir: Path) -> None:
    """Eject a card mounted under /Volumes/ with diskutil."""
    if not str(sdcard_dir).startswith("/Volumes/"):
        logger.info(f"Skipping disk ejection for non-volume path: {sdcard_dir}")
        return
    logger.info(f"Ejecting {sdcard_dir}")
    try:
        subprocess.run(["diskutil", "eject", str(sdcard_dir)], check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"failed to eject disk at {sdcard_dir}: {e.stderr.strip()}") from e
