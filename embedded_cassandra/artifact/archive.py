import stat
import shutil
import logging
import tarfile
import zipfile
from pathlib import Path

from embedded_cassandra.errors import InvalidArgument

log = logging.getLogger(__name__)

VERSION_MARKER = ".version"


def is_extracted(destination: Path, version) -> bool:
    """Returns True if `destination` already holds the extracted `version`."""
    marker = destination / VERSION_MARKER
    try:
        return marker.read_text().strip() == str(version)
    except (FileNotFoundError, NotADirectoryError):
        return False


def _restore_executable_bits(home: Path) -> None:
    """Zip archives drop POSIX modes; the launch scripts in bin/ must stay executable."""
    bin_dir = home / "bin"
    if not bin_dir.is_dir():
        return
    for script in bin_dir.iterdir():
        if script.is_file():
            mode = script.stat().st_mode
            script.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def extract_archive(archive_path: Path, destination: Path, version) -> Path:
    """
    Extracts a distribution archive into `destination` and returns it.

    A single top-level directory inside the archive is stripped, so
    `destination/bin/cassandra` is the launch script. Extraction is skipped
    when `destination` already carries a version marker for `version`.

    :param archive_path: The .tar.gz, .tgz or .zip archive.
    :param destination: The directory that becomes the Cassandra home.
    :param version: The version written into the marker file.
    """
    archive_path = Path(archive_path)
    destination = Path(destination)
    if is_extracted(destination, version):
        log.debug(f"Apache Cassandra ({version}) is already extracted in '{destination}'.")
        return destination

    raw_extract_dir = destination.with_name(f"_extract_{destination.name}")
    if raw_extract_dir.exists():
        shutil.rmtree(raw_extract_dir)
    if destination.exists():
        shutil.rmtree(destination)

    log.info(f"Extracting '{archive_path.name}' into '{destination}'...")
    try:
        is_zip = archive_path.suffix.lower() == ".zip"
        if is_zip:
            with zipfile.ZipFile(archive_path, "r") as zip_ref:
                zip_ref.extractall(raw_extract_dir)
        elif tarfile.is_tarfile(archive_path):
            with tarfile.open(archive_path, "r:*") as tar_ref:
                tar_ref.extractall(raw_extract_dir, filter="data")
        else:
            raise InvalidArgument(f"Archive '{archive_path}' is neither a zip nor a tar file")

        entries = list(raw_extract_dir.iterdir())
        source_dir = entries[0] if len(entries) == 1 and entries[0].is_dir() else raw_extract_dir
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source_dir), str(destination))
        if is_zip:
            _restore_executable_bits(destination)
        (destination / VERSION_MARKER).write_text(str(version))
    finally:
        if raw_extract_dir.exists():
            shutil.rmtree(raw_extract_dir)

    log.info(f"Apache Cassandra ({version}) is ready in '{destination}'.")
    return destination
