"""Tests for process helpers and log formatting."""

import logging
import sys
from pathlib import Path

import psutil

from walletsync.log.setup import MainFormatter
from walletsync.process.process_utils import (
    get_executable_path,
    get_proc_status_string,
    get_process_from_pid,
    is_responsive,
    redact_arguments,
)


class TestProcessUtils:

    def test_password_is_redacted(self):
        """Test the value after --password is masked and everything else is kept."""
        arguments = ["simplewallet", "--wallet-file", "w.bin", "--password", "hunter2", "--log-level", "0"]
        redacted = redact_arguments(arguments)

        assert "hunter2" not in redacted
        assert redacted[:4] == arguments[:4]
        assert redacted[-2:] == ["--log-level", "0"]
        assert arguments[4] == "hunter2"

    def test_executable_path_keeps_suffix(self):
        path = Path("bin") / "simplewallet.exe"
        assert get_executable_path(path) == path

    def test_executable_path_on_this_platform(self):
        path = Path("bin") / "simplewallet"
        expected = path.with_suffix(".exe") if sys.platform == "win32" else path
        assert get_executable_path(path) == expected

    def test_current_process_is_responsive(self):
        proc = get_process_from_pid(psutil.Process().pid)
        assert is_responsive(proc)
        assert get_proc_status_string(proc) == "running"

    def test_missing_handle_is_not_responsive(self):
        assert not is_responsive(None)


class TestMainFormatter:

    def _record(self, name):
        return logging.LogRecord(name, logging.INFO, __file__, 1, "line from backend", None, None)

    def test_backend_output_is_raw(self):
        assert MainFormatter().format(self._record("proc.wallet")) == "line from backend"

    def test_regular_records_are_decorated(self):
        formatted = MainFormatter().format(self._record("walletsync.wallet.manager"))
        assert "[walletsync.wallet.manager]" in formatted
        assert formatted.endswith("line from backend")
