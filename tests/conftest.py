"""Shared test fixtures for embedded-cassandra."""

import io
import socket
import tarfile
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import pytest

from embedded_cassandra.local import MergedSettings


class FakeResponse:
    """A stand-in for a streamed `requests.Response`."""

    def __init__(self, status_code: int = 200, body: bytes = b"", headers: Optional[Dict[str, str]] = None,
                 reason: str = "OK", chunk_size: int = 4):
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        self.reason = reason
        self.chunk_size = chunk_size
        self.closed = False
        self.consumed = False

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        self.consumed = True
        for i in range(0, len(self.body), self.chunk_size):
            yield self.body[i:i + self.chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned responses by URL and records every request."""

    def __init__(self, routes: Dict[str, object]):
        self.routes = routes
        self.calls: List[tuple] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, reason="Not Found")
        if isinstance(route, BaseException):
            raise route
        return route() if callable(route) else route


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def listener():
    """Opens listening sockets on demand and closes them after the test."""
    sockets: List[socket.socket] = []

    def _listen(port: int = 0) -> int:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", port))
        sock.listen(5)
        sockets.append(sock)
        return sock.getsockname()[1]

    yield _listen
    for sock in sockets:
        sock.close()


@pytest.fixture
def settings(tmp_path: Path) -> MergedSettings:
    """Settings isolated from the user's home directory and overrides file."""
    config = MergedSettings(overrides_path=tmp_path / "overrides.json")
    config.ARTIFACT_DIR = tmp_path / "artifacts"
    config.WORK_DIR = tmp_path / "work"
    config.DOWNLOAD_TEMP_DIR = tmp_path / "download"
    config.LISTEN_HOST = "127.0.0.1"
    config.JAVA_HOME = ""
    config.JVM_OPTIONS = []
    return config


def make_tar_gz(path: Path, files: Dict[str, str], modes: Optional[Dict[str, int]] = None) -> Path:
    """Writes a .tar.gz archive containing `files` (name -> text)."""
    modes = modes or {}
    with tarfile.open(path, "w:gz") as tar:
        for name, text in files.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = modes.get(name, 0o644)
            tar.addfile(info, io.BytesIO(data))
    return path
