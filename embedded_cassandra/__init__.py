"""
embedded-cassandra: run an Apache Cassandra node as a supervised child process for tests.
"""

__version__ = "1.0.0"

from .errors import CassandraError, InvalidArgument, PortConflictError, ResolutionError, ShutdownError
from .version import Version
from .supervisor import EmbeddedCassandra

__all__ = [
    "CassandraError", "InvalidArgument", "PortConflictError", "ResolutionError", "ShutdownError",
    "Version", "EmbeddedCassandra",
]
