"""Upload queue scanning and relocation of uploaded files."""

import errno
import logging
import os
import shutil
import stat
from collections.abc import Callable
from pathlib import Path

from camflow.models import QueuedItem

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


class QueueScanError(Exception):
    """Raised when the upload queue root itself cannot be walked."""

    pass


class DatePrefixError(ValueError):
    """Raised when a file name does not start with YYYY-MM-DD-."""

    pass


class RelocationError(Exception):
    """Raised when an uploaded file cannot be moved out of the queue."""

    pass


class DestinationExistsError(RelocationError):
    """Raised when the relocation destination already exists."""

    pass


def scan_upload_queue(queue_root: Path) -> tuple[list[QueuedItem], int]:
    """List every file below the upload queue root.

    Unreadable entries below the root are logged and skipped.

    Args:
        queue_root: Upload queue directory to walk

    Returns:
        Queued items in lexical walk order and the sum of their sizes

    Raises:
        QueueScanError: If the root itself cannot be read
    """
    queue_root = Path(queue_root)
    items: list[QueuedItem] = []
    total_size = 0
    walk_errors: list[OSError] = []

    def on_error(error: OSError) -> None:
        if error.filename is not None and Path(error.filename) == queue_root:
            raise QueueScanError(
                f"Upload queue directory '{queue_root}' disappeared or unreadable: {error}"
            ) from error
        logger.error(f"Error accessing {error.filename} during scan, skipping: {error}")
        walk_errors.append(error)

    for dirpath, dirnames, filenames in os.walk(queue_root, onerror=on_error):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            try:
                st = path.stat()
            except OSError as e:
                logger.error(f"Error reading file info for {path}, skipping: {e}")
                walk_errors.append(e)
                continue
            if not stat.S_ISREG(st.st_mode):
                logger.warning(f"Skipping {path}: not a regular file")
                continue
            items.append(QueuedItem(path=path, size=st.st_size, mtime=st.st_mtime))
            total_size += st.st_size

    if walk_errors:
        logger.warning(
            f"Encountered {len(walk_errors)} error(s) while scanning {queue_root}, "
            "proceeding with the files found"
        )
    return items, total_size


def parse_date_prefix(name: str) -> tuple[str, str, str]:
    """Split the date prefix off a "YYYY-MM-DD-<rest>" file name.

    Args:
        name: File base name

    Returns:
        Year, month and day strings

    Raises:
        DatePrefixError: If the name does not have a well-formed prefix
    """
    parts = name.split("-")
    if len(parts) < 4:
        raise DatePrefixError(
            f"Invalid date prefix in '{name}': expected at least 4 parts separated by '-'"
        )
    year, month, day = parts[:3]
    if len(year) != 4:
        raise DatePrefixError(f"Invalid date prefix in '{name}': year '{year}' must be 4 characters long")
    if len(month) != 2:
        raise DatePrefixError(f"Invalid date prefix in '{name}': month '{month}' must be 2 characters long")
    if len(day) != 2:
        raise DatePrefixError(f"Invalid date prefix in '{name}': day '{day}' must be 2 characters long")
    return year, month, day


def destination_path(item_path: Path, queue_root: Path, uploaded_root: Path, flat: bool) -> Path:
    """Compute where a queued file goes once uploaded.

    A flat queue holds "YYYY-MM-DD-" prefixed names which are filed under
    uploaded_root/YYYY/MM/DD/. Otherwise the path relative to the queue
    root is mirrored under uploaded_root.

    Raises:
        DatePrefixError: If the queue is flat and the name has no date prefix
        ValueError: If item_path is not inside queue_root
    """
    item_path = Path(item_path)
    if flat:
        year, month, day = parse_date_prefix(item_path.name)
        rel_path = Path(year, month, day, item_path.name)
    else:
        rel_path = item_path.relative_to(queue_root)
    return Path(uploaded_root) / rel_path


def _find_existing_parent(path: Path) -> Path:
    current = Path(os.path.abspath(path))
    while not current.exists():
        if current.parent == current:
            break
        current = current.parent
    return current


def is_same_filesystem(path1: Path, path2: Path) -> bool:
    """Check whether two paths, or their nearest existing parents, share a device."""
    dev1 = _find_existing_parent(path1).stat().st_dev
    dev2 = _find_existing_parent(path2).stat().st_dev
    return dev1 == dev2


def copy_file(
    src: Path,
    dst: Path,
    mtime: float,
    advance: Callable[[int], None] | None = None,
) -> None:
    """Copy src to dst through a temporary file and restore its mtime.

    Args:
        src: Source file
        dst: Final destination path
        mtime: Modification time to set on the copy
        advance: Optional callback receiving the number of bytes per chunk
    """
    dst = Path(dst)
    tmp = dst.with_name(dst.name + ".tmp")
    dst.parent.mkdir(parents=True, exist_ok=True)

    with open(src, "rb") as fsrc, open(tmp, "wb") as fdst:
        while chunk := fsrc.read(COPY_CHUNK_SIZE):
            fdst.write(chunk)
            if advance is not None:
                advance(len(chunk))

    os.replace(tmp, dst)
    os.utime(dst, (mtime, mtime))


def move_to_uploaded(item: QueuedItem, queue_root: Path, uploaded_root: Path, flat: bool) -> Path:
    """Move an uploaded file from the queue into the uploaded tree.

    Args:
        item: Queued file to move
        queue_root: Upload queue directory
        uploaded_root: Root of the uploaded tree
        flat: Whether the queue uses date-prefixed flat names

    Returns:
        The destination path

    Raises:
        DatePrefixError: If a flat-queue name has no date prefix
        DestinationExistsError: If the destination already exists
        RelocationError: If creating directories or moving the file fails
    """
    try:
        dest = destination_path(item.path, queue_root, uploaded_root, flat)
    except DatePrefixError as e:
        raise DatePrefixError(f"Failed to parse date prefix from file name {item.path.name}: {e}") from e
    except ValueError as e:
        raise RelocationError(
            f"Failed to get relative path for {item.path} from upload queue root {queue_root}: {e}"
        ) from e

    if dest.exists():
        raise DestinationExistsError(f"Failed to move {item.path}: destination file {dest} already exists")

    logger.debug(f"Moving {item.path} to {dest}")
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RelocationError(
            f"Failed to create destination directory {dest.parent} for moving {item.path}: {e}"
        ) from e

    try:
        if is_same_filesystem(item.path, dest.parent):
            os.rename(item.path, dest)
        else:
            copy_file(item.path, dest, item.mtime)
            item.path.unlink()
    except OSError as e:
        raise RelocationError(f"Failed to move {item.path} from upload queue to {dest}: {e}") from e

    logger.debug(f"Moved {item.path} to {dest}")
    return dest


def cleanup_empty_parent_dirs(path: Path, queue_root: Path) -> None:
    """Remove empty directories above a moved file, stopping below queue_root.

    Walks from the file's original parent upwards and stops at the first
    non-empty directory, at queue_root, or at anything outside it.

    Raises:
        OSError: If a directory cannot be read or removed
    """
    root = Path(os.path.abspath(queue_root))
    current = Path(os.path.abspath(path)).parent

    while current != root and root in current.parents:
        try:
            empty = not any(current.iterdir())
        except FileNotFoundError:
            current = current.parent
            continue
        if not empty:
            return
        try:
            current.rmdir()
            logger.debug(f"Removed empty upload queue subdirectory {current}")
        except FileNotFoundError:
            logger.debug(f"Upload queue subdirectory {current} already removed")
        current = current.parent


def remove_empty_dirs(dirs: set[Path]) -> None:
    """Remove each directory in dirs that is empty; others are left alone."""
    for directory in sorted(dirs):
        try:
            directory.rmdir()
        except FileNotFoundError:
            continue
        except OSError as e:
            if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                continue
            raise


def free_space(path: Path) -> int:
    """Bytes available on the filesystem holding path."""
    return shutil.disk_usage(path).free
