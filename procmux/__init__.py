"""
procmux: run the processes of a Procfile side by side and multiplex their output
into one aligned, colorized, timestamped stream.
"""

__version__ = "0.1.0"
