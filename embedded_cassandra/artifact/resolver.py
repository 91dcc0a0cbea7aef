import os
import time
import uuid
import shutil
import logging
import itertools
import threading
import requests
from pathlib import Path
from collections import namedtuple
from urllib.parse import urljoin, urlparse
from typing import Iterable, List, Optional, Tuple

from embedded_cassandra.errors import InvalidArgument, ResolutionError
from embedded_cassandra.local import app_settings
from embedded_cassandra.version import Version

log = logging.getLogger(__name__)

ArtifactRequest = namedtuple(
    'ArtifactRequest', ['version', 'directory', 'urls', 'proxy', 'connect_timeout', 'read_timeout']
)
CachedArtifact = namedtuple('CachedArtifact', ['version', 'path'])

HEADERS = {"User-Agent": "embedded-cassandra/1.0"}


def build_request(version, directory, urls: Iterable[str], proxy: Optional[str] = None,
                  connect_timeout: Optional[float] = None,
                  read_timeout: Optional[float] = None) -> ArtifactRequest:
    """Validates the inputs and freezes them into an ArtifactRequest."""
    if directory is None:
        raise InvalidArgument("Directory must not be None")
    if urls is None:
        raise InvalidArgument("URLs must not be None")
    if isinstance(urls, str):
        urls = [urls]
    candidates = tuple(str(url) for url in urls if url)
    if not candidates:
        raise InvalidArgument(f"No candidate URLs were given for version {version}")
    return ArtifactRequest(
        Version.parse(version), Path(directory), candidates, proxy or None, connect_timeout, read_timeout
    )


def get_file_name(url: str) -> str:
    """Returns the last path segment of a URL, which names the cached archive."""
    name = urlparse(url).path.rsplit("/", 1)[-1]
    if not name.strip():
        raise InvalidArgument(f"There is no way to determine a file name from ({url})")
    return name


class ProgressReporter:
    """Logs download progress at a fixed interval from a background thread."""

    def __init__(self, name: str, version: Version, total_size: int, interval: float):
        self.version = version
        self.total_size = total_size
        self.interval = interval
        self.downloaded = 0
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True, name=name)

    def update(self, size: int) -> None:
        self.downloaded += size

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread.is_alive():
            self._thread.join(timeout=self.interval)

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.report()

    def report(self) -> None:
        if self.total_size > 0:
            percent = self.downloaded * 100 // self.total_size
            log.info(f"Downloaded {self.downloaded} / {self.total_size}  {percent}%")


class ArtifactResolver:
    """
    Resolves a Cassandra distribution archive to a local file.

    Candidate URLs are tried in order. A candidate whose file already exists
    in the target directory is returned without downloading it again.
    """

    def __init__(self, session: requests.Session = None, temp_dir: Path = None,
                 max_redirects: int = None, progress_interval: float = None, chunk_size: int = None):
        self.session = session or requests.Session()
        self.temp_dir = Path(temp_dir or app_settings.DOWNLOAD_TEMP_DIR)
        self.max_redirects = app_settings.MAX_REDIRECTS if max_redirects is None else max_redirects
        self.progress_interval = progress_interval or app_settings.PROGRESS_INTERVAL
        self.chunk_size = chunk_size or app_settings.DOWNLOAD_CHUNK_SIZE
        self._thread_numbers = itertools.count(1)

    def resolve(self, version, directory, urls: Iterable[str], proxy: Optional[str] = None,
                connect_timeout: Optional[float] = None, read_timeout: Optional[float] = None) -> Path:
        """
        BLOCKING: Returns the local path of the archive for `version`.

        :raises ResolutionError: if every candidate URL fails.
        """
        request = build_request(version, directory, urls, proxy, connect_timeout, read_timeout)
        return self.resolve_request(request).path

    def resolve_request(self, request: ArtifactRequest) -> CachedArtifact:
        causes: List[BaseException] = []
        for url in request.urls:
            try:
                return CachedArtifact(request.version, self._resolve_candidate(request, url))
            except Exception as e:
                log.warning(f"Could not resolve Apache Cassandra ({request.version}) from ({url}): {e}")
                causes.append(e)
        raise ResolutionError(
            f"Could not download Apache Cassandra ({request.version}) from URLs {list(request.urls)}", causes
        )

    def _resolve_candidate(self, request: ArtifactRequest, url: str) -> Path:
        cached = self._find_cached(request, url)
        if cached is not None:
            return cached

        response, final_url = self._open(request, url)
        try:
            target = request.directory / get_file_name(final_url)
            if target.exists():
                log.debug(f"Apache Cassandra ({request.version}) found at '{target}'.")
                return target
            temp_file = self._download(request.version, response, final_url, target.name)
        finally:
            response.close()
        return self._store(temp_file, target)

    def _find_cached(self, request: ArtifactRequest, url: str) -> Optional[Path]:
        """Looks for the archive named by the candidate URL itself, before any network I/O."""
        try:
            target = request.directory / get_file_name(url)
        except InvalidArgument:
            # Only the redirect target can name the archive.
            return None
        if not target.exists():
            return None
        log.debug(f"Apache Cassandra ({request.version}) found at '{target}'.")
        return target

    def _open(self, request: ArtifactRequest, url: str, depth: int = 0) -> Tuple[requests.Response, str]:
        """Sends the request, following 3xx responses by hand up to `max_redirects` hops."""
        if depth > self.max_redirects:
            raise ResolutionError(f"Too many redirects ({self.max_redirects}) while resolving ({url})")

        proxies = {"http": request.proxy, "https": request.proxy} if request.proxy else None
        response = self.session.get(
            url, stream=True, allow_redirects=False, headers=HEADERS, proxies=proxies,
            timeout=(request.connect_timeout, request.read_timeout),
        )
        status = response.status_code
        if 300 <= status < 400:
            location = response.headers.get("Location")
            response.close()
            if not location or not location.strip():
                raise requests.HTTPError(f"HTTP ({status}) redirect from URL ({url}) has no Location header")
            next_url = urljoin(url, location.strip())
            log.debug(f"Following HTTP ({status}) redirect from ({url}) to ({next_url}).")
            return self._open(request, next_url, depth + 1)
        if status >= 400:
            response.close()
            raise requests.HTTPError(f"HTTP ({status} {response.reason}) status for URL ({url}) is invalid")
        return response, url

    def _download(self, version: Version, response: requests.Response, url: str, name: str) -> Path:
        """Streams the response body into a private scratch directory."""
        temp_file = self.temp_dir / uuid.uuid4().hex / name
        temp_file.parent.mkdir(parents=True, exist_ok=True)
        total_size = int(response.headers.get("Content-Length") or 0)

        reporter = ProgressReporter(f"artifact-{next(self._thread_numbers)}", version, total_size,
                                    self.progress_interval)
        log.info(f"Downloading Apache Cassandra ({version}) from ({url}).")
        start = time.monotonic()
        reporter.start()
        try:
            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
                        reporter.update(len(chunk))
        except BaseException:
            shutil.rmtree(temp_file.parent, ignore_errors=True)
            raise
        finally:
            reporter.stop()

        elapsed = int((time.monotonic() - start) * 1000)
        log.info(f"Apache Cassandra ({version}) has been downloaded ({elapsed} ms).")
        return temp_file

    def _store(self, temp_file: Path, target: Path) -> Path:
        """Moves a finished download into the cache, or keeps it where it is if that fails."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(temp_file, target)
        except OSError as e:
            log.error(f"Could not rename ({temp_file}) as ({target}): {e}")
            return temp_file
        shutil.rmtree(temp_file.parent, ignore_errors=True)
        return target
