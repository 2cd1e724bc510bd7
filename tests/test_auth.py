"""Tests for OAuth credential loading."""

import json
import stat
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from camflow import auth
from camflow.auth import SCOPES, load_credentials, token_file_path
from camflow.config import GooglePhotosConfig


@pytest.fixture
def gp_config() -> GooglePhotosConfig:
    return GooglePhotosConfig(
        client_id="id.apps.googleusercontent.com",
        client_secret="secret",
        redirect_uri="http://localhost:9090",
    )


def write_token(cache_dir: Path, expiry: datetime) -> Path:
    path = token_file_path(cache_dir)
    path.write_text(
        json.dumps(
            {
                "token": "cached-token",
                "refresh_token": "refresh",
                "client_id": "id.apps.googleusercontent.com",
                "client_secret": "secret",
                "token_uri": auth.GOOGLE_TOKEN_URI,
                "scopes": SCOPES,
                "expiry": expiry.strftime("%Y-%m-%dT%H:%M:%SZ"),
            }
        )
    )
    return path


def test_missing_client_secret(cache_dir: Path) -> None:
    with pytest.raises(ValueError, match="client_secret"):
        load_credentials(GooglePhotosConfig(client_id="id"), cache_dir)


def test_valid_cached_token(gp_config: GooglePhotosConfig, cache_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_token(cache_dir, datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1))
    monkeypatch.setattr(auth, "InstalledAppFlow", MagicMock(side_effect=AssertionError("no auth flow")))

    creds = load_credentials(gp_config, cache_dir)

    assert creds.token == "cached-token"


def test_runs_auth_flow_without_token(
    gp_config: GooglePhotosConfig, cache_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    flow_creds = MagicMock()
    flow_creds.to_json.return_value = '{"token": "new"}'
    flow = MagicMock()
    flow.run_local_server.return_value = flow_creds
    flow_cls = MagicMock()
    flow_cls.from_client_config.return_value = flow
    monkeypatch.setattr(auth, "InstalledAppFlow", flow_cls)

    creds = load_credentials(gp_config, cache_dir)

    assert creds is flow_creds
    client_config, scopes = flow_cls.from_client_config.call_args.args
    assert client_config["installed"]["client_id"] == "id.apps.googleusercontent.com"
    assert scopes == SCOPES
    assert flow.run_local_server.call_args.kwargs["port"] == 9090
    path = token_file_path(cache_dir)
    assert path.read_text() == '{"token": "new"}'
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_redirect_port_default() -> None:
    assert auth._redirect_port("") == 8080
    assert auth._redirect_port("not a url") == 8080
