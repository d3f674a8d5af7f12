"""
Local package for procmux.

This package holds everything that runs on the local machine: the Procfile
loader, the supervisor and its helpers, and the command-line console.
"""
