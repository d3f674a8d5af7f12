"""
This module initializes the console package, exposing command execution and
the usage text.
"""

from .process import execute_command
from .handler import print_usage

__all__ = ["execute_command", "print_usage"]
