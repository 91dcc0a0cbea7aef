"""Exceptions raised by embedded-cassandra."""

from typing import List, Optional


class CassandraError(Exception):
    """Base class for every error surfaced to callers of this package."""


class InvalidArgument(CassandraError, ValueError):
    """Malformed input, e.g. a URL without a derivable file name."""


class ResolutionError(CassandraError):
    """Every candidate artifact source failed."""

    def __init__(self, message: str, causes: Optional[List[BaseException]] = None):
        self.causes: List[BaseException] = list(causes or [])
        if self.causes:
            details = "; ".join(f"{type(c).__name__}: {c}" for c in self.causes)
            message = f"{message} [{details}]"
        super().__init__(message)


class ShutdownError(CassandraError):
    """The process is still alive after graceful retries and a forced destroy."""

    def __init__(self, name: str, pid: int):
        self.name = name
        self.pid = pid
        super().__init__(f"'{name}' (PID: {pid}) has not been stopped and is still running")


class PortConflictError(CassandraError):
    """A port expected to be owned by the server could be bound by someone else."""

    def __init__(self, feature: str, host: str, port: int):
        self.feature = feature
        self.host = host
        self.port = port
        super().__init__(f"{feature} port {host}:{port} is not bound by the server")
