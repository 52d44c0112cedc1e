"""Exceptions raised by the process supervisor and the wallet RPC client."""

from typing import Optional


class LaunchFailure(Exception):
    """The backend executable could not be spawned."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"Failed to launch '{executable}': {reason}")
        self.executable = executable
        self.reason = reason


class RpcCallFailure(Exception):
    """A JSON-RPC call failed at the transport level or returned a non-OK status."""

    def __init__(self, method: str, reason: str, code: Optional[int] = None) -> None:
        super().__init__(f"RPC call '{method}' failed: {reason}")
        self.method = method
        self.reason = reason
        self.code = code
