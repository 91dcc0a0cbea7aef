"""
This module contains the configuration settings for embedded-cassandra.
It defines paths, artifact sources, process timeouts and network ports.
Every value can be overridden through an environment variable or a `.env` file.
"""

import os
import pathlib
import tempfile
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

ENV_PREFIX = "EMBEDDED_CASSANDRA_"


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


def _env_bool(name: str, default: str) -> bool:
    return _env(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Core Paths ---
BASE_DIR = pathlib.Path(_env("HOME", str(pathlib.Path.home() / ".embedded-cassandra")))
ARTIFACT_DIR = pathlib.Path(_env("ARTIFACT_DIR", str(BASE_DIR / "artifacts")))
WORK_DIR = pathlib.Path(_env("WORK_DIR", str(BASE_DIR / "work")))
DOWNLOAD_TEMP_DIR = pathlib.Path(tempfile.gettempdir()) / "embedded-cassandra"
OVERRIDES_JSON_PATH = BASE_DIR / "overrides.json"

#* --- Artifact Settings ---
CASSANDRA_VERSION = _env("VERSION", "4.1.5")
ARCHIVE_NAME_TEMPLATE = "apache-cassandra-{version}-bin.tar.gz"
# Candidate mirrors, tried in order. `{version}` and `{archive}` are substituted.
ARTIFACT_URL_TEMPLATES = [
    url.strip() for url in _env(
        "ARTIFACT_URLS",
        "https://archive.apache.org/dist/cassandra/{version}/{archive},"
        "https://dlcdn.apache.org/cassandra/{version}/{archive}",
    ).split(",") if url.strip()
]
HTTP_PROXY = _env("PROXY", "") or None
CONNECT_TIMEOUT = float(_env("CONNECT_TIMEOUT", "30"))  # seconds
READ_TIMEOUT = float(_env("READ_TIMEOUT", "30"))        # seconds
MAX_REDIRECTS = 10
DOWNLOAD_CHUNK_SIZE = 8192
PROGRESS_INTERVAL = 3.0  # seconds between download progress lines

#* --- Process Settings ---
JAVA_HOME = _env("JAVA_HOME", os.getenv("JAVA_HOME", ""))
JVM_OPTIONS = [opt for opt in _env("JVM_OPTIONS", "").split() if opt]
MAX_HEAP_SIZE = _env("MAX_HEAP_SIZE", "512M")
HEAP_NEWSIZE = _env("HEAP_NEWSIZE", "128M")
ALLOW_ROOT = _env_bool("ALLOW_ROOT", "False")
READER_JOIN_TIMEOUT = 1.0  # seconds to wait for the output reader after exit

#* --- Supervisor Settings ---
GRACEFUL_SHUTDOWN_TIMEOUT = 5   # seconds per graceful attempt before retrying
STARTUP_TIMEOUT = int(_env("STARTUP_TIMEOUT", "90"))  # seconds
READINESS_POLL_INTERVAL = 0.5   # seconds, doubled up to the max between probes
READINESS_POLL_MAX_INTERVAL = 2.0
PORT_PROBE_TIMEOUT = 1.0        # seconds per connect attempt

#* --- Network Settings ---
LISTEN_HOST = _env("HOST", "127.0.0.1")
NATIVE_TRANSPORT_ENABLED = _env_bool("NATIVE_TRANSPORT_ENABLED", "True")
NATIVE_TRANSPORT_PORT = int(_env("NATIVE_TRANSPORT_PORT", "9042"))
NATIVE_TRANSPORT_SSL_PORT = int(_env("NATIVE_TRANSPORT_SSL_PORT", "0")) or None
RPC_ENABLED = _env_bool("RPC_ENABLED", "False")
RPC_PORT = int(_env("RPC_PORT", "9160"))
STORAGE_PORT = int(_env("STORAGE_PORT", "7000"))
SSL_STORAGE_PORT = int(_env("SSL_STORAGE_PORT", "7001"))

#* --- MODIFIABLE SETTINGS (Changeable at runtime via overrides.json) ---
MODIFIABLE_SETTINGS = {
    "ARTIFACT_DIR", "WORK_DIR", "CASSANDRA_VERSION", "ARTIFACT_URL_TEMPLATES", "HTTP_PROXY",
    "CONNECT_TIMEOUT", "READ_TIMEOUT", "JAVA_HOME", "JVM_OPTIONS", "MAX_HEAP_SIZE", "HEAP_NEWSIZE",
    "STARTUP_TIMEOUT", "LISTEN_HOST",
    "NATIVE_TRANSPORT_ENABLED", "NATIVE_TRANSPORT_PORT", "NATIVE_TRANSPORT_SSL_PORT",
    "RPC_ENABLED", "RPC_PORT",
}
