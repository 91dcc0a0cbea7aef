"""
The Supervisor package.
Manages the lifecycle of a single Cassandra node process.

It contains the process runner, the readiness prober, the stop protocol
and the `EmbeddedCassandra` facade that ties them together.
"""
from .cassandra import EmbeddedCassandra
from .process_utils import ProcessHandle, RunProcess
from .readiness import PortSpec, Readiness, all_disabled, all_ready, probe, verify_ports, wait_until_ready
from .shutdown import NodeProcess, interrupt_signal, terminate_signal

__all__ = [
    'EmbeddedCassandra', 'ProcessHandle', 'RunProcess', 'PortSpec', 'Readiness', 'all_disabled', 'all_ready',
    'probe', 'verify_ports', 'wait_until_ready', 'NodeProcess', 'interrupt_signal', 'terminate_signal',
]
