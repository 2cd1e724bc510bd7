"""Configuration loading for camflow.

The config file is TOML. Every value can be overridden from the
environment with a ``CAMFLOW_`` prefixed variable whose name is the
dotted key upper-cased with dots replaced by underscores, e.g.
``CAMFLOW_GOOGLE_PHOTOS_CLIENT_SECRET``.
"""

import logging
import os
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

APP_NAME = "camflow"
CONFIG_FILE = "config.toml"
ENV_PREFIX = "CAMFLOW_"
DEFAULT_REDIRECT_URI = "http://localhost:8080"


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""

    pass


@dataclass(frozen=True)
class LocalMediaConfig:
    """Local directories for one kind of media."""

    upload_queue_root: Path
    uploaded_root: Path
    queue_is_flat: bool


@dataclass
class GooglePhotosConfig:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    photos_default_album: str = ""
    videos_default_album: str = ""

    def validate(self) -> None:
        """Check credentials are present and default the redirect URI.

        Raises:
            ConfigError: If the client ID or secret is missing
        """
        if not self.client_id or not self.client_secret:
            raise ConfigError("missing google photos client_id or client_secret")
        if not self.redirect_uri:
            self.redirect_uri = DEFAULT_REDIRECT_URI
            logger.warning(
                f"google_photos.redirect_uri not set in config, using default: {self.redirect_uri}"
            )


@dataclass
class CamflowConfig:
    """Top-level camflow configuration."""

    photos_to_process_root: str = ""
    photos_upload_queue_dir: str = ""
    photos_uploaded_root: str = ""
    videos_upload_queue_root: str = ""
    videos_uploaded_root: str = ""
    google_photos: GooglePhotosConfig = field(default_factory=GooglePhotosConfig)
    path: Path | None = None

    @property
    def local_photos(self) -> LocalMediaConfig:
        """Photo queue settings; the photo queue holds date-prefixed files."""
        return LocalMediaConfig(
            upload_queue_root=Path(self.photos_upload_queue_dir),
            uploaded_root=Path(self.photos_uploaded_root),
            queue_is_flat=True,
        )

    @property
    def local_videos(self) -> LocalMediaConfig:
        """Video queue settings; the video tree is mirrored as is."""
        return LocalMediaConfig(
            upload_queue_root=Path(self.videos_upload_queue_root),
            uploaded_root=Path(self.videos_uploaded_root),
            queue_is_flat=False,
        )

    def validate(self) -> None:
        """Check that the required fields are set.

        Raises:
            ConfigError: If a required field is missing
        """
        if not (self.photos_to_process_root and self.photos_upload_queue_dir and self.photos_uploaded_root):
            raise ConfigError(f"missing photos field ({self.path})")
        if not (self.videos_upload_queue_root and self.videos_uploaded_root):
            raise ConfigError(f"missing videos field ({self.path})")
        try:
            self.google_photos.validate()
        except ConfigError as e:
            raise ConfigError(f"invalid google_photos config ({self.path}): {e}") from e

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], path: Path | None = None) -> "CamflowConfig":
        """Build a config from parsed TOML data."""
        gp = data.get("google_photos", {})
        if not isinstance(gp, Mapping):
            raise ConfigError(f"google_photos must be a table ({path})")
        photos = gp.get("photos", {})
        videos = gp.get("videos", {})
        return cls(
            photos_to_process_root=str(data.get("photos_to_process_root", "")),
            photos_upload_queue_dir=str(data.get("photos_upload_queue_dir", "")),
            photos_uploaded_root=str(data.get("photos_uploaded_root", "")),
            videos_upload_queue_root=str(data.get("videos_upload_queue_root", "")),
            videos_uploaded_root=str(data.get("videos_uploaded_root", "")),
            google_photos=GooglePhotosConfig(
                client_id=str(gp.get("client_id", "")),
                client_secret=str(gp.get("client_secret", "")),
                redirect_uri=str(gp.get("redirect_uri", "")),
                photos_default_album=str(photos.get("default_album", "")),
                videos_default_album=str(videos.get("default_album", "")),
            ),
            path=path,
        )


# Dotted config keys that may be overridden from the environment.
ENV_KEYS = (
    "photos_to_process_root",
    "photos_upload_queue_dir",
    "photos_uploaded_root",
    "videos_upload_queue_root",
    "videos_uploaded_root",
    "google_photos.client_id",
    "google_photos.client_secret",
    "google_photos.redirect_uri",
    "google_photos.photos.default_album",
    "google_photos.videos.default_album",
)


def _apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    for key in ENV_KEYS:
        env_name = ENV_PREFIX + key.replace(".", "_").upper()
        if env_name not in environ:
            continue
        *tables, leaf = key.split(".")
        target = data
        for table in tables:
            target = target.setdefault(table, {})
        target[leaf] = environ[env_name]
    return data


def user_config_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"


def user_cache_dir() -> Path:
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = os.environ.get("XDG_CACHE_HOME")
    return Path(xdg) if xdg else Path.home() / ".cache"


def default_config_path() -> Path:
    """Default location of the camflow config file."""
    return user_config_dir() / APP_NAME / CONFIG_FILE


def default_cache_dir() -> Path:
    """Default directory for the album cache and OAuth token."""
    return user_cache_dir() / APP_NAME


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> CamflowConfig:
    """Read the config file and apply environment overrides.

    Args:
        path: Config file path (defaults to default_config_path())
        environ: Environment mapping (defaults to os.environ)

    Returns:
        The loaded, unvalidated configuration

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(path) if path else default_config_path()
    environ = os.environ if environ is None else environ

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"error reading ({path}): {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"error parsing ({path}): {e}") from e

    return CamflowConfig.from_dict(_apply_env_overrides(data, environ), path=path)
