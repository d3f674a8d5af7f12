"""
The Supervisor package.
Manages the lifecycle of the processes declared in a Procfile.

This package contains the central Supervisor class and its helper modules,
which together handle spawning, output multiplexing, and group termination.
"""
from .supervisor import RunningProcess, Supervisor

__all__ = ['RunningProcess', 'Supervisor']
