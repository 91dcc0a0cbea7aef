"""
Logging module for embedded-cassandra.
This module provides the console logging setup used by the command line entry point.
"""

from .setup import setup_logging, MainFormatter

__all__ = ["setup_logging", "MainFormatter"]
