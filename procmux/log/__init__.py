"""
Logging module for procmux.
This module provides the logging setup that splits multiplexed process output
from the supervisor's own diagnostics.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
