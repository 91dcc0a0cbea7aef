"""Tests for port probing and the pre-flight port verification."""

import pytest

from embedded_cassandra.errors import InvalidArgument, PortConflictError
from embedded_cassandra.supervisor.readiness import (
    PortSpec, Readiness, all_disabled, all_ready, probe, verify_ports, wait_until_ready,
)

HOST = "127.0.0.1"


class TestProbe:

    def test_disabled_feature_ignores_ports(self, listener, free_port):
        bound = listener()
        results = probe([PortSpec("rpc", False, bound), PortSpec("native", False, free_port)], HOST)
        assert results == {"rpc": Readiness.DISABLED, "native": Readiness.DISABLED}

    def test_pending_then_ready(self, listener, free_port):
        specs = [PortSpec("native", True, free_port)]
        assert probe(specs, HOST) == {"native": Readiness.PENDING}

        listener(free_port)
        assert probe(specs, HOST) == {"native": Readiness.READY}

    def test_every_port_of_a_feature_must_accept(self, listener, free_port):
        port = listener()
        assert probe([PortSpec("native", True, port, free_port)], HOST) == {"native": Readiness.PENDING}

        ssl_port = listener()
        assert probe([PortSpec("native", True, port, ssl_port)], HOST) == {"native": Readiness.READY}

    def test_features_are_independent(self, listener, free_port):
        port = listener()
        results = probe([PortSpec("native", True, port), PortSpec("rpc", True, free_port)], HOST)
        assert results == {"native": Readiness.READY, "rpc": Readiness.PENDING}

    def test_none_is_rejected(self):
        with pytest.raises(InvalidArgument):
            probe(None, HOST)
        with pytest.raises(InvalidArgument):
            probe([None], HOST)

    @pytest.mark.parametrize("port", [0, 70000, "9042"])
    def test_invalid_port(self, port):
        with pytest.raises(InvalidArgument):
            probe([PortSpec("native", True, port)], HOST)

    def test_invalid_port_of_disabled_feature_is_ignored(self):
        assert probe([PortSpec("rpc", False, 0)], HOST) == {"rpc": Readiness.DISABLED}


class TestPredicates:

    def test_all_ready(self):
        assert all_ready({"native": Readiness.READY, "rpc": Readiness.DISABLED})
        assert not all_ready({"native": Readiness.READY, "rpc": Readiness.PENDING})

    def test_all_disabled(self):
        assert all_disabled({"native": Readiness.DISABLED, "rpc": Readiness.DISABLED})
        assert not all_disabled({"native": Readiness.READY, "rpc": Readiness.DISABLED})

    def test_readiness_values(self):
        assert [r.value for r in Readiness] == ["ready", "pending", "disabled"]


class TestVerifyPorts:

    def test_listening_ports_pass(self, listener):
        verify_ports([PortSpec("native", True, listener(), listener())], HOST)

    def test_unbound_port_conflicts(self, listener, free_port):
        with pytest.raises(PortConflictError) as exc_info:
            verify_ports([PortSpec("native", True, listener(), free_port)], HOST)
        assert exc_info.value.port == free_port
        assert exc_info.value.feature == "native"

    def test_disabled_feature_is_skipped(self, free_port):
        verify_ports([PortSpec("rpc", False, free_port)], HOST)


class TestWaitUntilReady:

    def test_ready(self, listener):
        assert wait_until_ready([PortSpec("native", True, listener())], HOST, timeout=5)

    def test_all_disabled(self, free_port):
        assert wait_until_ready([PortSpec("native", False, free_port)], HOST, timeout=5)

    def test_times_out(self, free_port):
        assert not wait_until_ready([PortSpec("native", True, free_port)], HOST, timeout=0.2)

    def test_stops_when_process_dies(self, free_port):
        calls = []

        def _alive():
            calls.append(1)
            return False

        assert not wait_until_ready([PortSpec("native", True, free_port)], HOST, timeout=30, alive=_alive)
        assert calls == [1]
