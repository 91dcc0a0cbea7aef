from unittest import mock

import pytest

from embedded_cassandra import main as console
from embedded_cassandra.errors import ResolutionError
from embedded_cassandra.supervisor.readiness import PortSpec


@pytest.fixture(autouse=True)
def no_logging_setup():
    with mock.patch.object(console, "setup_logging") as setup:
        yield setup


class TestMain:

    def test_help_without_command(self, capsys):
        assert console.main([]) == 2
        assert "Usage" in capsys.readouterr().out

    def test_unknown_command(self, capsys):
        assert console.main(["explode"]) == 2

    def test_probe(self, capsys, listener, free_port):
        port = listener()
        specs = [PortSpec("native transport", True, port), PortSpec("rpc", False, free_port)]
        with mock.patch.object(console, "default_port_specs", return_value=specs):
            assert console.main(["probe", "127.0.0.1"]) == 0
        out = capsys.readouterr().out
        assert "native transport: ready" in out
        assert "rpc: disabled" in out

    def test_resolve_prints_path(self, capsys, tmp_path):
        with mock.patch.object(console, "ArtifactResolver") as resolver_cls:
            resolver_cls.return_value.resolve.return_value = tmp_path / "cassandra.tar.gz"
            assert console.main(["resolve", "4.1.5"]) == 0
        assert str(tmp_path / "cassandra.tar.gz") in capsys.readouterr().out
        assert resolver_cls.return_value.resolve.call_args[0][0] == "4.1.5"

    def test_errors_become_exit_code(self):
        with mock.patch.object(console, "ArtifactResolver") as resolver_cls:
            resolver_cls.return_value.resolve.side_effect = ResolutionError("no mirror")
            assert console.main(["resolve", "--verbose"]) == 1

    def test_verbose_flag(self, no_logging_setup):
        console.main(["--verbose"])
        no_logging_setup.assert_called_once_with(10)
