import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import IO, Any, Callable, Dict, List, Optional, Sequence

log = logging.getLogger(__name__)

SECRET_ARGUMENTS = ("--password",)
UNRESPONSIVE_STATUSES = (psutil.STATUS_ZOMBIE, psutil.STATUS_STOPPED, psutil.STATUS_DEAD)


#* --- Process Status ---
def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(proc: psutil.Process) -> str:
    """Gets a string representation of a process status."""
    try:
        if proc.status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"

def is_responsive(proc: Optional[psutil.Process]) -> bool:
    """
    Whether the process can still be asked to exit politely.
    Zombies, stopped (SIGSTOP) and dead processes cannot read their input.
    """
    if proc is None:
        return False
    try:
        return proc.is_running() and proc.status() not in UNRESPONSIVE_STATUSES
    except psutil.Error:
        return False


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    if sys.platform == "win32" and not base_path.suffix:
        return base_path.with_suffix(".exe")
    return base_path

def get_popen_creation_flags() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for subprocess.Popen.

    On Windows the backend runs without a console window. Elsewhere it gets a
    new session so that terminal signals aimed at the console do not reach it.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def redact_arguments(arguments: Sequence[str]) -> List[str]:
    """Returns a copy of `arguments` safe to log, with secret values masked."""
    redacted: List[str] = []
    hide_next = False
    for argument in arguments:
        if hide_next:
            redacted.append("******")
            hide_next = False
            continue
        redacted.append(argument)
        hide_next = argument in SECRET_ARGUMENTS
    return redacted


#* --- Output Streaming ---
def _read_pipe(
    pipe: IO[bytes],
    process_name: str,
    level: int,
    line_handler: Callable[[str], None],
) -> None:
    """Target function for reader threads. Reads, logs and dispatches lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").rstrip("\r\n")
            proc_logger.log(level, line)
            try:
                line_handler(line)
            except Exception as e:
                proc_logger.error(f"Error in line handler: {e}", exc_info=True)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        try:
            pipe.close()
        except OSError:
            pass

def start_output_readers(
    process: subprocess.Popen,
    process_name: str,
    on_output: Callable[[str], None],
    on_error: Callable[[str], None],
) -> List[threading.Thread]:
    """
    Starts one background thread per output stream of `process`.

    The threads keep the pipes drained so that the child never blocks on a
    full buffer. Each one ends at end-of-stream, which follows the exit of the
    process.

    :return: The started reader threads.
    """
    readers = []
    streams = (
        (process.stdout, logging.INFO, on_output, "stdout"),
        (process.stderr, logging.ERROR, on_error, "stderr"),
    )
    for pipe, level, handler, stream_name in streams:
        if pipe is None:
            continue
        thread = threading.Thread(
            target=_read_pipe,
            args=(pipe, process_name, level, handler),
            daemon=True,
            name=f"{process_name}-{stream_name}-reader",
        )
        thread.start()
        readers.append(thread)
    return readers
