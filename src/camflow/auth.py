"""OAuth authentication for the Google Photos Library API."""

import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from camflow.config import DEFAULT_REDIRECT_URI, GooglePhotosConfig

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/photoslibrary.readonly.appcreateddata",
    "https://www.googleapis.com/auth/photoslibrary.appendonly",
    "https://www.googleapis.com/auth/photoslibrary.edit.appcreateddata",
]

TOKEN_FILE = "google_photos_token.json"
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


def token_file_path(cache_dir: Path) -> Path:
    """Get the path of the OAuth token file inside ``cache_dir``."""
    return Path(cache_dir) / TOKEN_FILE


def _client_config(config: GooglePhotosConfig) -> dict:
    return {
        "installed": {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "auth_uri": GOOGLE_AUTH_URI,
            "token_uri": GOOGLE_TOKEN_URI,
            "redirect_uris": [config.redirect_uri or DEFAULT_REDIRECT_URI],
        }
    }


def _redirect_port(redirect_uri: str) -> int:
    parsed = urlparse(redirect_uri or DEFAULT_REDIRECT_URI)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        logger.warning(f"Unsupported redirect URI {redirect_uri!r}, using {DEFAULT_REDIRECT_URI}")
        parsed = urlparse(DEFAULT_REDIRECT_URI)
    return parsed.port or 8080


def save_credentials(path: Path, creds: Credentials) -> None:
    """Write the token JSON, readable only by the current user."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(creds.to_json())


def load_credentials(config: GooglePhotosConfig, cache_dir: Path) -> Credentials:
    """Load cached OAuth credentials, refreshing or re-authorizing as needed.

    Args:
        config: Google Photos client settings
        cache_dir: Directory holding the token file

    Returns:
        Valid credentials

    Raises:
        ValueError: If the client ID or secret is not configured
    """
    if not config.client_id or not config.client_secret:
        raise ValueError("Google Photos client_id or client_secret not configured")

    path = token_file_path(cache_dir)
    creds: Credentials | None = None
    if path.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(path), SCOPES)
        except ValueError as e:
            logger.warning(f"Error reading token file {path}, requesting new token: {e}")

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            save_credentials(path, creds)
            return creds
        except RefreshError as e:
            logger.warning(f"Refreshing OAuth token failed, starting auth flow: {e}")

    if creds is None:
        logger.info("No existing OAuth token found, starting auth flow")
    else:
        logger.info("OAuth token is invalid, starting auth flow")

    flow = InstalledAppFlow.from_client_config(_client_config(config), SCOPES)
    creds = flow.run_local_server(port=_redirect_port(config.redirect_uri), open_browser=True)
    try:
        save_credentials(path, creds)
        logger.info(f"Token obtained and saved to {path}")
    except OSError as e:
        logger.warning(f"Failed to save token to {path}: {e}")
    return creds
