"""
The process package.
Supervises one external executable: launching it, streaming its output,
feeding its input, and shutting it down without losing data.
"""
from .rpc_probe import RpcAvailabilityProbe
from .supervisor import ProcessSupervisor
from .timers import PeriodicTimer

__all__ = ['ProcessSupervisor', 'RpcAvailabilityProbe', 'PeriodicTimer']
