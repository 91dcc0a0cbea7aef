import pytest

from embedded_cassandra.errors import InvalidArgument
from embedded_cassandra.version import Version


class TestVersion:

    @pytest.mark.parametrize("text, expected", [
        ("4.1.5", "4.1.5"),
        ("4.1", "4.1.0"),
        (" 3.11.16 ", "3.11.16"),
        ("4.0-beta4", "4.0.0-beta4"),
        ("5.0.0-rc1", "5.0.0-rc1"),
    ])
    def test_normalized_form(self, text, expected):
        assert str(Version.parse(text)) == expected

    def test_equality_uses_normalized_form(self):
        assert Version.parse("4.1") == Version.parse("4.1.0")
        assert hash(Version.parse("4.1")) == hash(Version.parse("4.1.0"))
        assert Version.parse("4.1.0") != Version.parse("4.1.1")
        assert Version.parse("4.1.0") != "4.1.0"

    def test_ordering(self):
        versions = [Version.parse(v) for v in ["4.1.0", "3.11.16", "4.1.0-rc1", "4.0.12"]]
        assert [str(v) for v in sorted(versions)] == ["3.11.16", "4.0.12", "4.1.0-rc1", "4.1.0"]

    def test_parse_accepts_version(self):
        version = Version.parse("4.1.5")
        assert Version.parse(version) is version

    @pytest.mark.parametrize("text", [None, "", "four", "4", "4.x.1", "4.1.5-"])
    def test_invalid(self, text):
        with pytest.raises(InvalidArgument):
            Version.parse(text)

    def test_immutable(self):
        with pytest.raises(AttributeError):
            Version.parse("4.1.5").major = 5
