import psutil
import logging
import subprocess
from typing import TYPE_CHECKING, Callable
from walletsync.process.process_utils import get_proc_status_string, is_responsive

if TYPE_CHECKING:
    from .supervisor import ManagedProcess

log = logging.getLogger(__name__)

EXIT_COMMAND = "exit"


def _forceful_kill(managed: "ManagedProcess") -> None:
    """Forcefully kills a process that did not exit gracefully."""
    log.warning(f"Killing stubborn process {managed.name} (PID {managed.pid}).")
    try:
        if managed.handle is not None:
            managed.handle.kill()
        else:
            managed.popen.kill()
    except (psutil.NoSuchProcess, ProcessLookupError):
        log.debug(f"Process {managed.pid} no longer exists, skipping forceful kill.")
    except (psutil.Error, OSError) as e:
        log.error(f"Failed to kill process {managed.pid}: {e}")


def graceful_shutdown_sequence(managed: "ManagedProcess", send: Callable[[str], None], timeout: float) -> None:
    """
    Asks the process to exit and waits for it, escalating to a kill.

    A responsive process receives an 'exit' line on its input and gets
    `timeout` seconds to terminate on its own. An unresponsive one, or one that
    overstays the timeout, is killed. In every case the function blocks until
    the OS reports the process as terminated. It never raises.

    :param managed: The process to shut down.
    :param send: Writes one line to the process's standard input.
    :param timeout: Seconds to wait for a graceful exit.
    """
    if managed.popen.poll() is not None:
        log.debug(f"Process {managed.name} (PID {managed.pid}) already exited with code {managed.popen.returncode}.")
        return

    if is_responsive(managed.handle):
        log.info(f"Asking {managed.name} (PID {managed.pid}) to exit...")
        send(EXIT_COMMAND)
        try:
            managed.popen.wait(timeout=timeout)
            log.info(f"{managed.name} exited gracefully with code {managed.popen.returncode}.")
        except subprocess.TimeoutExpired:
            log.warning(f"{managed.name} did not exit within {timeout} seconds.")
            _forceful_kill(managed)
    else:
        log.warning(f"{managed.name} is {get_proc_status_string(managed.handle) if managed.handle else 'unknown'}, not responding.")
        _forceful_kill(managed)

    # Final blocking wait, the kill above is asynchronous.
    try:
        managed.popen.wait()
    except OSError as e:
        log.debug(f"Final wait for {managed.name} failed: {e}")
