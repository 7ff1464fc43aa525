import json
import os
import shutil
import subprocess
from contextlib import contextmanager
from pathlib import Path

import jwt
import pytest
import structlog
from fastapi.testclient import TestClient

from tubely.core.config import Settings, get_settings
from tubely.core.errors import StorageError
from tubely.main import create_app
from tubely.media.temp_files import TempFileManager
from tubely.storage.object_store import ObjectStore


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own env",
    )


# get_settings copies alias variables into these names; drop them so nothing
# leaks between tests.
ALIAS_TARGETS = ("TUBELY_ENVIRONMENT", "TUBELY_DATABASE_URL", "TUBELY_S3_ENDPOINT_URL")


def _clear_alias_targets() -> None:
    for name in ALIAS_TARGETS:
        os.environ.pop(name, None)


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    _clear_alias_targets()
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        _clear_alias_targets()
        structlog.reset_defaults()
        return

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'tubely_test.db'}")
    monkeypatch.setenv("TUBELY_ASSETS_ROOT", str(tmp_path / "assets"))
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_ROOT", str(tmp_path / "store"))
    monkeypatch.setenv("TUBELY_PUBLIC_BASE_URL", "https://cdn.example.test")
    monkeypatch.setenv("TUBELY_JWT_SECRET", "test-secret")
    monkeypatch.setenv("TUBELY_THUMBNAIL_MODE", "inline")

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    _clear_alias_targets()
    structlog.reset_defaults()


@pytest.fixture()
def settings(configure_environment) -> Settings:
    return get_settings()


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def build_token(user_id: str, *, secret: str = "test-secret") -> str:
    return jwt.encode({"sub": user_id}, secret, algorithm="HS256")


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-1')}"}


@pytest.fixture()
def other_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-2')}"}


class FakeMediaTools:
    """Stands in for ffprobe/ffmpeg by answering ``subprocess.run`` calls."""

    def __init__(self):
        self.width = 1920
        self.height = 1080
        self.probe_returncode = 0
        self.probe_stdout: str | None = None
        self.transform_returncode = 0
        self.calls: list[list[str]] = []

    def binaries_called(self) -> list[str]:
        return [Path(call[0]).name for call in self.calls]

    def __call__(self, command, **kwargs):
        command = list(command)
        self.calls.append(command)
        binary = Path(command[0]).name
        if binary == "ffprobe":
            if self.probe_returncode != 0:
                return subprocess.CompletedProcess(command, self.probe_returncode, stdout="", stderr="Invalid data found")
            stdout = self.probe_stdout
            if stdout is None:
                stdout = json.dumps({"programs": [], "streams": [{"width": self.width, "height": self.height}]}, indent=4)
            return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr="")
        if binary == "ffmpeg":
            output = Path(command[-1])
            if self.transform_returncode != 0:
                output.write_bytes(b"partial")
                return subprocess.CompletedProcess(command, self.transform_returncode, stdout="", stderr="moov atom not found")
            shutil.copyfile(command[command.index("-i") + 1], output)
            return subprocess.CompletedProcess(command, 0, stdout="", stderr="")
        raise AssertionError(f"unexpected command: {command}")


@pytest.fixture()
def media_tools(monkeypatch) -> FakeMediaTools:
    tools = FakeMediaTools()
    monkeypatch.setattr(subprocess, "run", tools)
    return tools


class FakeObjectStore(ObjectStore):
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.uploads: list[dict] = []

    def upload(self, local_path: Path, key: str, content_type: str) -> str:
        assert local_path.exists(), "upload source must exist during upload"
        self.uploads.append({"path": local_path, "key": key, "content_type": content_type, "data": local_path.read_bytes()})
        if self.fail:
            raise StorageError("AccessDenied")
        return self.url_for(key)

    def url_for(self, key: str) -> str:
        return f"https://tubely-test.s3.us-east-1.amazonaws.com/{key}"


@pytest.fixture()
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


class CountingTempFileManager(TempFileManager):
    """Records every scratch file that came into existence and every deletion."""

    def __init__(self, root: Path):
        super().__init__(root)
        self.created: list[Path] = []
        self.deleted: list[Path] = []

    def write(self, path: Path, data: bytes) -> None:
        super().write(path, data)
        self.created.append(path)

    @contextmanager
    def owned(self, path: Path):
        self.created.append(path)
        with super().owned(path) as owned_path:
            yield owned_path

    def delete(self, path: Path) -> None:
        super().delete(path)
        self.deleted.append(path)


@pytest.fixture()
def temp_files(tmp_path) -> CountingTempFileManager:
    return CountingTempFileManager(tmp_path / "scratch")


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """
    Generates a small, valid MP4 video file for testing in a temporary directory.
    """
    video_path = tmp_path_factory.mktemp("data") / "test_video.mp4"

    # 1-second 128x72 clip with a solid color
    command = [
        "ffmpeg",
        "-f", "lavfi",
        "-i", "color=c=black:s=128x72:r=30",
        "-t", "1",
        "-pix_fmt", "yuv420p",
        str(video_path)
    ]
    subprocess.run(command, check=True, capture_output=True)
    return video_path
