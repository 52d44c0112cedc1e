"""
Logging module for the application.
This module provides the root logger configuration used by the console.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
