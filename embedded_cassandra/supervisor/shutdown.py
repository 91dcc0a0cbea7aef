import sys
import signal
import psutil
import logging
from typing import Callable, List, Optional

from embedded_cassandra.errors import ShutdownError
from embedded_cassandra.local import app_settings
from embedded_cassandra.supervisor.process_utils import ProcessHandle

log = logging.getLogger(__name__)

GracefulStop = Callable[[ProcessHandle], None]

#* --- Stop states ---
RUNNING = "running"
STOP_REQUESTED = "stop_requested"
STOPPED = "stopped"
UNRESPONSIVE = "unresponsive"


def terminate_signal(handle: ProcessHandle) -> None:
    """Asks the process and its process group to stop with SIGTERM (TerminateProcess on Windows)."""
    log.debug(f"Sending SIGTERM to {handle}")
    handle.send_signal(signal.SIGTERM)


def interrupt_signal(handle: ProcessHandle) -> None:
    """Asks the process and its process group to stop with SIGINT (CTRL_BREAK_EVENT on Windows)."""
    sig = signal.CTRL_BREAK_EVENT if sys.platform == "win32" else signal.SIGINT
    log.debug(f"Sending interrupt to {handle}")
    handle.send_signal(sig)


class NodeProcess:
    """
    Stops a single supervised process.

    The graceful-stop action is requested, and retried once, before the
    process is forcefully destroyed. The handle itself stays owned by the
    runner that created it.
    """

    def __init__(self, handle: ProcessHandle, graceful_stop: GracefulStop = terminate_signal,
                 name: str = "cassandra", grace_period: Optional[float] = None):
        self.handle = handle
        self.graceful_stop = graceful_stop
        self.name = name
        self.grace_period = app_settings.GRACEFUL_SHUTDOWN_TIMEOUT if grace_period is None else grace_period
        self.state = RUNNING

    @property
    def pid(self) -> int:
        return self.handle.pid

    def is_alive(self) -> bool:
        return self.handle.is_alive()

    def __str__(self) -> str:
        return f"{self.name}:{self.pid}"

    def _request_stop(self, attempt: int) -> None:
        log.info(f"Stopping {self} (attempt {attempt})...")
        try:
            self.graceful_stop(self.handle)
        except Exception as e:
            log.warning(f"Graceful stop of {self} failed: {e}", exc_info=True)

    def stop(self) -> None:
        """
        BLOCKING: Stops the process within two grace periods plus a forced destroy.

        :raises ShutdownError: if the process is still alive afterwards.
        """
        if not self.handle.is_alive():
            self.handle.close()
            self.state = STOPPED
            return

        self.state = STOP_REQUESTED
        descendants = self.handle.descendants()
        self._request_stop(1)
        if self.handle.wait(self.grace_period) is None:
            log.warning(f"{self} did not stop within {self.grace_period} seconds. Retrying...")
            self._request_stop(2)
            if self.handle.wait(self.grace_period) is None:
                log.warning(f"{self} did not stop gracefully. Forcing shutdown...")
                self.handle.destroy()
                self.handle.wait(self.grace_period)

        if self.handle.is_alive():
            self.state = UNRESPONSIVE
            log.critical(f"{self} is still running after a forced shutdown.")
            raise ShutdownError(self.name, self.pid)

        self._stop_leftovers(descendants)
        self.handle.close()
        self.state = STOPPED
        log.info(f"{self} has been stopped (exit code {self.handle.returncode}).")

    def _stop_leftovers(self, descendants: List[psutil.Process]) -> None:
        """Kills processes spawned by the node that outlived it by more than a grace period."""
        leftovers = [proc for proc in descendants if _is_running(proc)]
        if not leftovers:
            return
        log.info(f"Waiting for {len(leftovers)} leftover process(es) of {self}...")
        _, alive = psutil.wait_procs(leftovers, timeout=self.grace_period)
        for proc in alive:
            try:
                log.warning(f"Killing leftover process {proc.pid} of {self}.")
                proc.kill()
            except psutil.NoSuchProcess:
                continue


def _is_running(proc: psutil.Process) -> bool:
    try:
        return proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
