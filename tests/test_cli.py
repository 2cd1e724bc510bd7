"""Black-box tests for CLI entry point."""

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from pytest_httpx import HTTPXMock
from typer.testing import CliRunner

from camflow import __version__
from camflow.cli import app

runner = CliRunner()

BASE = "https://photoslibrary.googleapis.com/v1"


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def config_file(tmp_path: Path, media_root: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(
        f"""\
photos_to_process_root = "{media_root / 'to-process'}"
photos_upload_queue_dir = "{media_root / 'photo-queue'}"
photos_uploaded_root = "{media_root / 'photos'}"
videos_upload_queue_root = "{media_root / 'video-queue'}"
videos_uploaded_root = "{media_root / 'videos'}"

[google_photos]
client_id = "id"
client_secret = "secret"
redirect_uri = "http://localhost:8080"

[google_photos.photos]
default_album = "Trip"
"""
    )
    return path


class TestCLI:
    """Test command-line interface."""

    def test_cli_help(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("import", "upload-photos", "upload-videos", "mark-videos-uploaded", "version"):
            assert command in result.stdout

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "camflow" in result.stdout
        assert __version__ in result.stdout

    def test_missing_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["-c", str(tmp_path / "missing.toml"), "upload-photos"])

        assert result.exit_code == 1
        assert "failed to load config" in result.stdout

    def test_invalid_config(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text('photos_to_process_root = "/p"\n')

        result = runner.invoke(app, ["-c", str(path), "mark-videos-uploaded", "--yes"])

        assert result.exit_code == 1
        assert "missing photos field" in result.stdout

    def test_mark_videos_uploaded(self, config_file: Path, media_root: Path) -> None:
        video = media_root / "video-queue" / "2024" / "05" / "15" / "MVI_0001.MP4"
        video.parent.mkdir(parents=True)
        video.write_bytes(b"video")

        result = runner.invoke(app, ["-c", str(config_file), "mark-videos-uploaded", "--yes"])

        assert result.exit_code == 0
        assert "Moved 1 video" in result.stdout
        assert (media_root / "videos" / "2024" / "05" / "15" / "MVI_0001.MP4").is_file()
        assert not video.exists()

    def test_mark_videos_uploaded_declined(self, config_file: Path, media_root: Path) -> None:
        video = media_root / "video-queue" / "MVI_0001.MP4"
        video.parent.mkdir(parents=True)
        video.write_bytes(b"video")

        result = runner.invoke(app, ["-c", str(config_file), "mark-videos-uploaded"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.stdout
        assert video.is_file()

    def test_import(self, config_file: Path, media_root: Path, tmp_path: Path) -> None:
        card = tmp_path / "card" / "DCIM" / "100CANON"
        card.mkdir(parents=True)
        (card / "IMG_0001.JPG").write_bytes(b"jpg")
        (card / "MVI_0002.MP4").write_bytes(b"mp4")

        result = runner.invoke(app, ["-c", str(config_file), "import", "--src", str(tmp_path / "card")])

        assert result.exit_code == 0, result.stdout
        assert "Imported from 1 dir:" in result.stdout
        assert "100CANON: 1 photo, 1 video" in result.stdout
        assert len(list((media_root / "video-queue").iterdir())) == 1

    def test_upload_photos(
        self,
        config_file: Path,
        media_root: Path,
        tmp_path: Path,
        httpx_mock: HTTPXMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Upload one queued photo into a newly created album."""
        credentials = SimpleNamespace(token="tok", valid=True, refresh=lambda request: None)
        monkeypatch.setattr("camflow.cli.load_credentials", lambda config, cache_dir: credentials)
        queue = media_root / "photo-queue"
        queue.mkdir()
        (queue / "2024-05-15-IMG_0001.JPG").write_bytes(b"jpeg")

        httpx_mock.add_response(method="GET", url=f"{BASE}/albums?pageSize=50", json={})
        httpx_mock.add_response(method="POST", url=f"{BASE}/albums", json={"id": "A1", "title": "Trip"})
        httpx_mock.add_response(method="POST", url=f"{BASE}/uploads", text="T1")
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/mediaItems:batchCreate",
            json={"newMediaItemResults": [{"mediaItem": {"id": "M1", "filename": "2024-05-15-IMG_0001.JPG"}}]},
        )
        httpx_mock.add_response(method="POST", url=f"{BASE}/albums/A1:batchAddMediaItems", json={})

        cache_dir = tmp_path / "cache"
        result = runner.invoke(
            app, ["-c", str(config_file), "--cache-dir", str(cache_dir), "upload-photos"]
        )

        assert result.exit_code == 0, result.stdout
        assert "Uploaded and moved: 1" in result.stdout
        assert (media_root / "photos" / "2024" / "05" / "15" / "2024-05-15-IMG_0001.JPG").is_file()
        cache = json.loads((cache_dir / "google_photos_album_cache.json").read_text())
        assert cache == {"albums": {"Trip": "A1"}}

    def test_upload_photos_add_failure_exits_nonzero(
        self,
        config_file: Path,
        media_root: Path,
        tmp_path: Path,
        httpx_mock: HTTPXMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        credentials = SimpleNamespace(token="tok", valid=True, refresh=lambda request: None)
        monkeypatch.setattr("camflow.cli.load_credentials", lambda config, cache_dir: credentials)
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        (cache_dir / "google_photos_album_cache.json").write_text('{"albums": {"Trip": "A1"}}')
        queue = media_root / "photo-queue"
        queue.mkdir()
        (queue / "2024-05-15-IMG_0001.JPG").write_bytes(b"jpeg")

        httpx_mock.add_response(method="POST", url=f"{BASE}/uploads", text="T1")
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/mediaItems:batchCreate",
            json={"newMediaItemResults": [{"mediaItem": {"id": "M1", "filename": "x.jpg"}}]},
        )
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE}/albums/A1:batchAddMediaItems",
            status_code=400,
            json={"error": {"code": 400, "message": "Album not writable", "status": "INVALID_ARGUMENT"}},
        )

        result = runner.invoke(
            app, ["-c", str(config_file), "--cache-dir", str(cache_dir), "upload-photos"]
        )

        assert result.exit_code == 1
        assert "Left in queue after errors: 1" in result.stdout
        assert (queue / "2024-05-15-IMG_0001.JPG").is_file()
