"""
This module initializes the console package, exposing command execution,
event printing and help for the interactive wallet console.
"""

from .process import execute_command
from .handler import register_event_printers, print_help

__all__ = ["execute_command", "register_event_printers", "print_help"]
