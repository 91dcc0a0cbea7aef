import sys
import time
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from embedded_cassandra.artifact import ArtifactResolver, extract_archive
from embedded_cassandra.errors import CassandraError
from embedded_cassandra.local import app_settings
from embedded_cassandra.version import Version
from embedded_cassandra.supervisor import readiness
from embedded_cassandra.supervisor.process_utils import RunProcess
from embedded_cassandra.supervisor.readiness import PortSpec
from embedded_cassandra.supervisor.shutdown import GracefulStop, NodeProcess, terminate_signal

log = logging.getLogger(__name__)

#* --- Lifecycle states ---
NEW = "new"
STARTING = "starting"
STARTED = "started"
STOPPING = "stopping"
STOPPED = "stopped"
FAILED = "failed"


def default_port_specs(config=app_settings) -> List[PortSpec]:
    """Builds the readiness port list from the configured transports."""
    return [
        PortSpec("native transport", config.NATIVE_TRANSPORT_ENABLED,
                 config.NATIVE_TRANSPORT_PORT, config.NATIVE_TRANSPORT_SSL_PORT),
        PortSpec("rpc", config.RPC_ENABLED, config.RPC_PORT),
    ]


class EmbeddedCassandra:
    """
    Runs one Apache Cassandra node for the duration of a test session.

    `start()` resolves and extracts the distribution, launches `bin/cassandra -f`
    and blocks until the configured transports accept connections.
    `stop()` shuts the node down and always terminates in bounded time.
    """

    def __init__(self, version=None, config=app_settings, resolver: ArtifactResolver = None,
                 work_dir: Path = None, urls: List[str] = None, port_specs: List[PortSpec] = None,
                 jvm_options: List[str] = None, system_properties: Dict[str, Any] = None,
                 environment: Dict[str, Any] = None, graceful_stop: GracefulStop = terminate_signal,
                 output_consumer: Callable[[str], None] = None, startup_timeout: float = None,
                 allow_root: bool = None, name: str = "cassandra") -> None:
        self.config = config
        self.version = Version.parse(version or config.CASSANDRA_VERSION)
        self.resolver = resolver or ArtifactResolver()
        self.work_dir = Path(work_dir or config.WORK_DIR)
        self.urls = list(urls) if urls is not None else config.artifact_urls(self.version)
        self.port_specs = list(port_specs) if port_specs is not None else default_port_specs(config)
        self.jvm_options = list(jvm_options if jvm_options is not None else config.JVM_OPTIONS)
        self.system_properties: Dict[str, Any] = dict(system_properties or {})
        self.environment: Dict[str, Any] = dict(environment or {})
        self.graceful_stop = graceful_stop
        self.output_consumer = output_consumer or logging.getLogger(f"proc.{name}").info
        self.startup_timeout = config.STARTUP_TIMEOUT if startup_timeout is None else startup_timeout
        self.allow_root = config.ALLOW_ROOT if allow_root is None else allow_root
        self.name = name

        self.state = NEW
        self.node: Optional[NodeProcess] = None
        self._lock = threading.RLock()

    def __str__(self) -> str:
        return f"Apache Cassandra ({self.version})"

    def __enter__(self) -> "EmbeddedCassandra":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    @property
    def pid(self) -> Optional[int]:
        return self.node.pid if self.node is not None else None

    def is_alive(self) -> bool:
        node = self.node
        return node is not None and node.is_alive()

    def start(self) -> None:
        """
        BLOCKING: Starts the node. Has no effect if it is already started.

        :raises CassandraError: if the node cannot be started.
        """
        with self._lock:
            if self.state == STARTED:
                return
            if self.node is not None:
                # A node left behind by a failed stop must be gone before another one starts.
                self.stop()
            start_time = time.time()
            log.info(f"Starting {self}...")
            try:
                self.state = STARTING
                self._do_start()
            except CassandraError:
                self._stop_safely()
                self.state = FAILED
                raise
            except Exception as e:
                self._stop_safely()
                self.state = FAILED
                raise CassandraError(f"Unable to start {self}") from e
            self.state = STARTED
            log.info(f"{self} has been started in {time.time() - start_time:.2f} seconds.")

    def stop(self) -> None:
        """
        BLOCKING: Stops the node. Has no effect if it is not running.

        :raises CassandraError: if the node cannot be stopped.
        """
        with self._lock:
            if self.node is None:
                self.state = STOPPED
                return
            log.info(f"Stopping {self}...")
            try:
                self.state = STOPPING
                self.node.stop()
            except CassandraError:
                self.state = FAILED
                raise
            except Exception as e:
                self.state = FAILED
                raise CassandraError(f"Unable to stop {self}") from e
            self.node = None
            self.state = STOPPED
            log.info(f"{self} has been stopped.")

    def _stop_safely(self) -> None:
        if self.node is None:
            return
        try:
            self.node.stop()
            self.node = None
        except Exception as e:
            log.error(f"Unable to stop {self} after a failed start: {e}", exc_info=True)

    def _do_start(self) -> None:
        archive = self.resolver.resolve(
            self.version, self.config.ARTIFACT_DIR, self.urls, self.config.HTTP_PROXY,
            self.config.CONNECT_TIMEOUT, self.config.READ_TIMEOUT,
        )
        home = extract_archive(archive, self.work_dir / f"apache-cassandra-{self.version}", self.version)

        runner = RunProcess(*self.build_arguments(home), working_directory=home,
                            environment=self.build_environment(), name=self.name)
        handle = runner.start()
        self.node = NodeProcess(handle, self.graceful_stop, self.name)
        handle.drain(self.output_consumer, runner.next_thread_name())

        host = self.config.LISTEN_HOST
        if not readiness.wait_until_ready(self.port_specs, host, self.startup_timeout, alive=handle.is_alive):
            if not handle.is_alive():
                raise CassandraError(f"{self} exited with code {handle.returncode} during startup")
            raise CassandraError(f"{self} has not been started within {self.startup_timeout} seconds")
        readiness.verify_ports(self.port_specs, host)

    def build_arguments(self, home: Path) -> List[Any]:
        """Returns the command line for `bin/cassandra` in the foreground."""
        arguments: List[Any] = [home / "bin" / "cassandra", "-f"]
        if self.allow_root and sys.platform != "win32":
            arguments.append("-R")
        for key, value in self._build_system_properties().items():
            arguments.append(f"-D{key}={value}" if value is not None else f"-D{key}")
        return arguments

    def _build_system_properties(self) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        for spec in self.port_specs:
            if spec.feature == "native transport":
                properties["cassandra.start_native_transport"] = str(bool(spec.enabled)).lower()
                properties["cassandra.native_transport_port"] = spec.port
            elif spec.feature == "rpc":
                properties["cassandra.start_rpc"] = str(bool(spec.enabled)).lower()
                properties["cassandra.rpc_port"] = spec.port
        properties["cassandra.storage_port"] = self.config.STORAGE_PORT
        properties["cassandra.ssl_storage_port"] = self.config.SSL_STORAGE_PORT
        properties.update(self.system_properties)
        return properties

    def build_environment(self) -> Dict[str, Any]:
        environment: Dict[str, Any] = {
            "MAX_HEAP_SIZE": self.config.MAX_HEAP_SIZE,
            "HEAP_NEWSIZE": self.config.HEAP_NEWSIZE,
        }
        if self.config.JAVA_HOME:
            environment["JAVA_HOME"] = self.config.JAVA_HOME
        if self.jvm_options:
            environment["JVM_EXTRA_OPTS"] = " ".join(self.jvm_options)
        environment.update(self.environment)
        return environment
