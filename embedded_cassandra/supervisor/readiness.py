import time
import socket
import logging
from enum import Enum
from collections import namedtuple
from typing import Callable, Dict, Iterable, List, Optional

from embedded_cassandra.errors import InvalidArgument, PortConflictError
from embedded_cassandra.local import app_settings

log = logging.getLogger(__name__)

PortSpec = namedtuple('PortSpec', ['feature', 'enabled', 'port', 'ssl_port'], defaults=(None,))


class Readiness(str, Enum):
    READY = "ready"
    PENDING = "pending"
    DISABLED = "disabled"


def _validate(port_specs: Iterable[PortSpec]) -> List[PortSpec]:
    if port_specs is None:
        raise InvalidArgument("Port specs must not be None")
    specs = list(port_specs)
    for spec in specs:
        if not isinstance(spec, PortSpec):
            raise InvalidArgument(f"Expected a PortSpec, got {spec!r}")
        if spec.enabled:
            for port in _ports(spec):
                if not isinstance(port, int) or not 0 < port < 65536:
                    raise InvalidArgument(f"Port {port!r} of '{spec.feature}' is invalid")
    return specs


def _ports(spec: PortSpec) -> List[int]:
    ports = [spec.port]
    if spec.ssl_port is not None and spec.ssl_port != spec.port:
        ports.append(spec.ssl_port)
    return ports


def is_port_open(host: str, port: int, timeout: float = None) -> bool:
    """Returns True if something accepts a TCP connection on host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout or app_settings.PORT_PROBE_TIMEOUT):
            return True
    except OSError:
        return False


def probe(port_specs: Iterable[PortSpec], host: str = None, timeout: float = None) -> Dict[str, Readiness]:
    """
    Probes every feature once.

    A disabled feature is reported as DISABLED without touching its ports.
    An enabled feature is READY only when all of its ports accept a connection.
    """
    host = host or app_settings.LISTEN_HOST
    results: Dict[str, Readiness] = {}
    for spec in _validate(port_specs):
        if not spec.enabled:
            results[spec.feature] = Readiness.DISABLED
        elif all(is_port_open(host, port, timeout) for port in _ports(spec)):
            results[spec.feature] = Readiness.READY
        else:
            results[spec.feature] = Readiness.PENDING
    return results


def all_ready(results: Dict[str, Readiness]) -> bool:
    return all(r is not Readiness.PENDING for r in results.values())


def all_disabled(results: Dict[str, Readiness]) -> bool:
    return all(r is Readiness.DISABLED for r in results.values())


def verify_ports(port_specs: Iterable[PortSpec], host: str = None) -> None:
    """
    Checks that every enabled port is really owned by a listener.

    :raises PortConflictError: if a port could be bound, i.e. nobody listens on it.
    """
    host = host or app_settings.LISTEN_HOST
    for spec in _validate(port_specs):
        if not spec.enabled:
            continue
        for port in _ports(spec):
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                try:
                    sock.bind((host, port))
                except OSError:
                    continue
            raise PortConflictError(spec.feature, host, port)


def wait_until_ready(port_specs: Iterable[PortSpec], host: str = None, timeout: float = None,
                     alive: Optional[Callable[[], bool]] = None) -> bool:
    """
    BLOCKING: Polls `probe` with backoff until every feature is ready or disabled.

    :param alive: Optional liveness check; polling stops early when it returns False.
    :return: True if ready, False on timeout or when the process died.
    """
    specs = _validate(port_specs)
    host = host or app_settings.LISTEN_HOST
    timeout = app_settings.STARTUP_TIMEOUT if timeout is None else timeout
    interval = app_settings.READINESS_POLL_INTERVAL

    log.info(f"Waiting for {[s.feature for s in specs if s.enabled]} at {host}...")
    start_time = time.monotonic()
    while True:
        results = probe(specs, host)
        if all_disabled(results) or all_ready(results):
            summary = ", ".join(f"{name}={r.value}" for name, r in results.items())
            log.info(f"Transport is ready after {time.monotonic() - start_time:.2f} seconds ({summary}).")
            return True
        if alive is not None and not alive():
            log.error("Process exited before its ports became available.")
            return False
        if time.monotonic() - start_time >= timeout:
            log.critical(f"Transport did not become available after {timeout} seconds.")
            return False
        time.sleep(interval)
        interval = min(interval * 2, app_settings.READINESS_POLL_MAX_INTERVAL)
