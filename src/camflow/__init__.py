"""camflow - Import camera media and upload it to Google Photos albums."""

__version__ = "0.1.0"

from camflow.album_cache import AlbumCache
from camflow.api_client import GooglePhotosClient
from camflow.config import CamflowConfig, LocalMediaConfig, load_config
from camflow.models import Album, ItemResult, ItemStatus, MediaItem, QueuedItem, UploadSummary
from camflow.rate_limiter import RateLimiter
from camflow.uploader import MediaUploader

__all__ = [
    "AlbumCache",
    "GooglePhotosClient",
    "CamflowConfig",
    "LocalMediaConfig",
    "load_config",
    "Album",
    "ItemResult",
    "ItemStatus",
    "MediaItem",
    "QueuedItem",
    "UploadSummary",
    "RateLimiter",
    "MediaUploader",
]
