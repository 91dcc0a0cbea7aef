import json
from pathlib import Path

from embedded_cassandra.local import MergedSettings


class TestMergedSettings:

    def test_defaults_without_overrides(self, tmp_path: Path):
        config = MergedSettings(overrides_path=tmp_path / "missing.json")
        assert config.GRACEFUL_SHUTDOWN_TIMEOUT == 5
        assert config.MAX_REDIRECTS == 10
        assert config.PROGRESS_INTERVAL == 3.0

    def test_whitelisted_overrides_are_applied(self, tmp_path: Path):
        path = tmp_path / "overrides.json"
        path.write_text(json.dumps({
            "CASSANDRA_VERSION": "4.0.12",
            "ARTIFACT_DIR": str(tmp_path / "cache"),
            "GRACEFUL_SHUTDOWN_TIMEOUT": 1,
            "UNKNOWN_SETTING": True,
        }))
        config = MergedSettings(overrides_path=path)

        assert config.CASSANDRA_VERSION == "4.0.12"
        assert config.ARTIFACT_DIR == tmp_path / "cache"
        assert isinstance(config.ARTIFACT_DIR, Path)
        assert config.GRACEFUL_SHUTDOWN_TIMEOUT == 5
        assert not hasattr(config, "UNKNOWN_SETTING")

    def test_malformed_overrides_are_ignored(self, tmp_path: Path):
        path = tmp_path / "overrides.json"
        path.write_text("{not json")
        config = MergedSettings(overrides_path=path)
        assert config.GRACEFUL_SHUTDOWN_TIMEOUT == 5

    def test_artifact_urls(self, tmp_path: Path):
        config = MergedSettings(overrides_path=tmp_path / "missing.json")
        config.ARTIFACT_URL_TEMPLATES = ["https://a.example/{version}/{archive}", "https://b.example/{archive}"]
        assert config.artifact_urls("4.1.5") == [
            "https://a.example/4.1.5/apache-cassandra-4.1.5-bin.tar.gz",
            "https://b.example/apache-cassandra-4.1.5-bin.tar.gz",
        ]
