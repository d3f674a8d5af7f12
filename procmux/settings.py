"""
This module contains the configuration settings for procmux.
It defines resource names, output formatting, and the termination mode,
read from the environment so a run can be tuned without code changes.
"""

import os

#* --- Resource Names ---
# Both are resolved against the current working directory at `start`.
PROCFILE_NAME = os.getenv("PROCMUX_PROCFILE", "Procfile")
ENV_FILE_NAME = os.getenv("PROCMUX_ENV_FILE", ".env")

#* --- Termination Settings ---
# Empty/unset keeps the default whole-group mode.
TRUTHY_VALUES = ("1", "true", "yes", "y", "on")
SELECTIVE_KILL = os.getenv("PROCMUX_SELECTIVE_KILL", "").strip().lower() in TRUTHY_VALUES

#* --- Output Settings ---
COLORS = ("cyan", "magenta", "red", "green", "yellow")
TIMESTAMP_FORMAT = "%H:%M:%S"
# 'always' forces ANSI colors, 'never' disables them, 'auto' defers to termcolor's tty detection.
COLOR_MODE = os.getenv("PROCMUX_COLOR", "always").strip().lower()
SEPARATOR = "|"

#* --- Execution Settings ---
# Must accept POSIX `-f` (noglob) and `-c`.
SHELL = os.getenv("PROCMUX_SHELL", "/bin/sh")

#* --- Logging Settings ---
LOG_LEVEL = os.getenv("PROCMUX_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'
PROC_LOGGER_PREFIX = "proc."

#* --- Process Titles ---
PROCESS_TITLE = "procmux"


def is_selective_kill(value=None) -> bool:
    """
    Interprets a boolean-like toggle value for the selective termination mode.

    :param value: The raw value. When None, the module-level setting is returned.
    :return bool: True when selective mode is requested.
    """
    if value is None:
        return SELECTIVE_KILL
    return str(value).strip().lower() in TRUTHY_VALUES


def force_color_flags() -> dict:
    """Returns the keyword arguments for termcolor based on COLOR_MODE."""
    if COLOR_MODE == "never":
        return {"no_color": True}
    if COLOR_MODE == "auto":
        return {}
    return {"force_color": True}
