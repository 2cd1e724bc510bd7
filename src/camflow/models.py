"""Data models for camflow."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True)
class QueuedItem:
    """A media file waiting in an upload queue directory."""

    path: Path
    size: int
    mtime: float = 0.0

    def __post_init__(self) -> None:
        """Validate queued item data."""
        if self.size < 0:
            raise ValueError(f"Queued item size cannot be negative: {self.size}")


@dataclass(frozen=True)
class Album:
    """A Google Photos album."""

    id: str
    title: str

    def __post_init__(self) -> None:
        """Validate album data."""
        if not self.id:
            raise ValueError("Album ID cannot be empty")


@dataclass(frozen=True)
class MediaItem:
    """A media item created in the Google Photos library."""

    id: str
    filename: str

    def __post_init__(self) -> None:
        """Validate media item data."""
        if not self.id:
            raise ValueError("Media item ID cannot be empty")


class ItemStatus(str, Enum):
    """Outcome of processing one queued item."""

    RELOCATED = "relocated"
    KEPT = "kept"
    CREATE_FAILED = "create_failed"
    ALBUM_ADD_FAILED = "album_add_failed"


@dataclass(frozen=True)
class ItemResult:
    """Result of uploading a single queued item."""

    path: Path
    status: ItemStatus
    media_item_id: str | None = None
    destination: Path | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        """Validate item result."""
        if self.status == ItemStatus.RELOCATED and self.destination is None:
            raise ValueError("Relocated item must have a destination")
        if self.status != ItemStatus.CREATE_FAILED and not self.media_item_id:
            raise ValueError("Created item must have a media_item_id")
        if self.status == ItemStatus.CREATE_FAILED and not self.error_message:
            raise ValueError("Failed item must have an error_message")

    @property
    def in_queue(self) -> bool:
        """Whether the source file is still in the upload queue."""
        return self.status != ItemStatus.RELOCATED


@dataclass
class UploadSummary:
    """Aggregate outcome of one upload run."""

    results: list[ItemResult] = field(default_factory=list)
    processed_bytes: int = 0

    def count(self, status: ItemStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def remaining(self) -> int:
        """Number of processed items still left in the queue."""
        return sum(1 for r in self.results if r.in_queue)


class ItemType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


@dataclass(frozen=True)
class ImportedFile:
    """A file copied off the SD card."""

    src_path: Path
    dst_path: Path
    mtime: float
    item_type: ItemType


@dataclass(frozen=True)
class ImportSrcDirEntry:
    relative_dir: str
    photo_count: int
    video_count: int


@dataclass(frozen=True)
class ImportDstDirEntry:
    relative_dir: str
    photo_count: int


@dataclass
class ImportResult:
    """Summary of an SD card import."""

    src_entries: list[ImportSrcDirEntry] = field(default_factory=list)
    dst_entries: list[ImportDstDirEntry] = field(default_factory=list)
    imported_files: list[ImportedFile] = field(default_factory=list)
