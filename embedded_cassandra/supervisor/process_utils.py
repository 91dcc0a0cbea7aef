import os
import sys
import signal
import psutil
import logging
import itertools
import threading
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from embedded_cassandra.errors import InvalidArgument
from embedded_cassandra.local import app_settings

log = logging.getLogger(__name__)

LineConsumer = Callable[[str], None]


def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific keyword arguments for subprocess.Popen."""
    if sys.platform == "win32":
        # A new process group can receive CTRL_BREAK_EVENT without hitting us.
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


class ProcessHandle:
    """
    A spawned child process together with the arguments it was started with.

    The handle owns the output reader thread: `drain()` starts it and
    `join_reader()` is the point where it is waited for.
    """

    def __init__(self, popen: subprocess.Popen, arguments: List[str], environment: Dict[str, str],
                 working_directory: Optional[Path]):
        self.popen = popen
        self.pid: int = popen.pid
        self.arguments = arguments
        self.environment = environment
        self.working_directory = working_directory
        self._reader: Optional[threading.Thread] = None

    def __str__(self) -> str:
        return f"{Path(self.arguments[0]).name}:{self.pid}"

    @property
    def returncode(self) -> Optional[int]:
        return self.popen.poll()

    def is_alive(self) -> bool:
        return self.popen.poll() is None

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Waits for the process to exit. Returns the exit code, or None on timeout."""
        try:
            return self.popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

    def drain(self, consumer: LineConsumer, thread_name: str) -> threading.Thread:
        """Starts the background thread that feeds each output line to `consumer`."""
        if self._reader is not None:
            raise RuntimeError(f"Output of {self} is already being consumed")
        self._reader = threading.Thread(
            target=self._read_output, args=(consumer,), daemon=True, name=thread_name
        )
        self._reader.start()
        return self._reader

    def join_reader(self, timeout: float) -> bool:
        """Waits up to `timeout` seconds for the reader. Returns True if it finished."""
        if self._reader is None:
            return True
        self._reader.join(timeout)
        return not self._reader.is_alive()

    def _read_output(self, consumer: LineConsumer) -> None:
        pipe = self.popen.stdout
        try:
            for line_bytes in iter(pipe.readline, b""):
                line = line_bytes.decode("utf-8", errors="replace").rstrip()
                if not line.strip():
                    continue
                try:
                    consumer(line)
                except Exception as e:
                    log.error(f"Output consumer for {self} failed: {e}", exc_info=True)
        except (ValueError, OSError) as e:
            # The stream was closed while a read was in flight, e.g. during destroy().
            log.debug(f"Output reader for {self} exited: {e}")
        except Exception as e:
            log.error(f"Output reader for {self} failed: {e}", exc_info=True)
        finally:
            pipe.close()

    def descendants(self) -> List[psutil.Process]:
        """Returns a snapshot of every process spawned below this one."""
        try:
            return psutil.Process(self.pid).children(recursive=True)
        except psutil.NoSuchProcess:
            return []

    def send_signal(self, sig: int) -> None:
        """Signals the whole process group started for this handle."""
        if sys.platform == "win32":
            # CTRL_BREAK_EVENT already reaches the new process group.
            try:
                psutil.Process(self.pid).send_signal(sig)
            except psutil.NoSuchProcess:
                log.debug(f"Process {self} no longer exists, skipping signal {sig}.")
            return
        try:
            # start_new_session makes the child the leader of a group with its own pid.
            os.killpg(self.pid, sig)
        except ProcessLookupError:
            log.debug(f"Process group of {self} no longer exists, skipping signal {sig}.")

    def destroy(self) -> None:
        """Forcefully kills the process and everything it spawned."""
        children = self.descendants()
        if sys.platform != "win32":
            self.send_signal(signal.SIGKILL)
        for child in children:
            try:
                log.warning(f"Killing child process {child.pid} of {self}.")
                child.kill()
            except psutil.NoSuchProcess:
                continue
        if self.is_alive():
            try:
                self.popen.kill()
            except ProcessLookupError:
                pass

    def close(self, timeout: float = None) -> None:
        """Releases the output pipe once the process has exited."""
        if self._reader is None:
            if self.popen.stdout:
                self.popen.stdout.close()
            return
        timeout = app_settings.READER_JOIN_TIMEOUT if timeout is None else timeout
        # The reader closes the pipe itself once every writer is gone.
        if self.join_reader(timeout):
            return
        if sys.platform != "win32":
            log.warning(f"Output of {self} is held open by leftover processes. Killing its process group...")
            self.send_signal(signal.SIGKILL)
            if self.join_reader(timeout):
                return
        log.debug(f"Output reader for {self} is still running after exit.")


class RunProcess:
    """Creates and runs a child process with merged stdout/stderr."""

    def __init__(self, *arguments: Any, working_directory: Optional[Path] = None,
                 environment: Optional[Dict[str, Any]] = None, name: str = "process"):
        self.arguments: List[Any] = list(arguments)
        self.environment: Dict[str, Any] = dict(environment or {})
        self.working_directory = working_directory
        self.name = name
        self._thread_numbers = itertools.count()

    def add_arguments(self, *arguments: Any) -> None:
        self.arguments.extend(arguments)

    def put_environment(self, name: str, value: Any) -> None:
        if name is None:
            raise InvalidArgument("Environment variable name must not be None")
        self.environment[name] = value

    def next_thread_name(self) -> str:
        return f"{self.name}-{next(self._thread_numbers)}"

    def _prepare_arguments(self) -> List[str]:
        arguments = [str(arg) for arg in self.arguments if arg is not None and str(arg).strip()]
        if not arguments:
            raise InvalidArgument("There are no arguments to run")
        return arguments

    def _prepare_environment(self) -> Dict[str, str]:
        return {
            str(key): "" if value is None else str(value)
            for key, value in self.environment.items() if key is not None
        }

    def start(self) -> ProcessHandle:
        """
        Starts a new process.

        :raises OSError: if the process cannot be spawned.
        """
        arguments = self._prepare_arguments()
        environment = self._prepare_environment()
        work_dir = Path(self.working_directory) if self.working_directory is not None else None

        msg = f"Run a command '{' '.join(arguments)}'"
        if work_dir is not None:
            msg += f" within the directory '{work_dir}'"
        if environment:
            msg += f" using the environment {environment}"
        log.info(msg)

        env = os.environ.copy()
        env.update(environment)
        popen = subprocess.Popen(
            arguments, cwd=str(work_dir) if work_dir is not None else None, env=env,
            stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            **_get_popen_creation_flags()
        )
        return ProcessHandle(popen, arguments, environment, work_dir)

    def run(self, consumer: LineConsumer) -> int:
        """BLOCKING: Starts the process, feeds its output to `consumer` and returns the exit code."""
        if consumer is None:
            raise InvalidArgument("Consumer must not be None")
        handle = self.start()
        handle.drain(consumer, self.next_thread_name())
        exit_code = handle.wait()
        handle.close()
        return exit_code
