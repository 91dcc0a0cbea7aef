"""
This package acquires Cassandra distributions.
It exposes the `ArtifactResolver`, which downloads and caches archives,
and `extract_archive`, which unpacks a resolved archive into a working directory.
"""

from .resolver import ArtifactRequest, ArtifactResolver, CachedArtifact, build_request, get_file_name
from .archive import extract_archive

__all__ = ["ArtifactRequest", "ArtifactResolver", "CachedArtifact", "build_request", "get_file_name",
           "extract_archive"]
