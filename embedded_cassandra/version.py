import re
from functools import total_ordering

from embedded_cassandra.errors import InvalidArgument

VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?(?:-([0-9A-Za-z.\-]+))?$")


@total_ordering
class Version:
    """
    An immutable `major.minor.patch[-qualifier]` version.

    Two versions are equal when their normalized string forms match;
    a missing patch component normalizes to `0`.
    """

    __slots__ = ("major", "minor", "patch", "qualifier")

    def __init__(self, major: int, minor: int, patch: int = 0, qualifier: str = None):
        object.__setattr__(self, "major", int(major))
        object.__setattr__(self, "minor", int(minor))
        object.__setattr__(self, "patch", int(patch))
        object.__setattr__(self, "qualifier", qualifier or None)

    @classmethod
    def parse(cls, text) -> "Version":
        """Parses a version string such as '4.1.5' or '4.0-beta4'."""
        if isinstance(text, Version):
            return text
        match = VERSION_PATTERN.match(str(text).strip()) if text is not None else None
        if not match:
            raise InvalidArgument(f"Version '{text}' is invalid")
        major, minor, patch, qualifier = match.groups()
        return cls(major, minor, patch or 0, qualifier)

    def __setattr__(self, name, value):
        raise AttributeError(f"'{type(self).__name__}' is immutable")

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.qualifier}" if self.qualifier else base

    def __repr__(self) -> str:
        return f"Version('{self}')"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    def __lt__(self, other) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        # A qualified version (e.g. a beta) sorts before its release.
        return self._sort_key() < other._sort_key()

    def _sort_key(self):
        return (self.major, self.minor, self.patch, self.qualifier is None, self.qualifier or "")
