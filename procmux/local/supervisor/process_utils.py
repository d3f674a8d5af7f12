import os
import re
import signal
import psutil
import logging
from typing import Iterable, List, Mapping, Optional

from procmux import settings

log = logging.getLogger(__name__)

# $NAME or ${NAME}
_PARAMETER_RE = re.compile(r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")
# Anything a plain whitespace split cannot express, quoting and escapes included.
_SHELL_SYNTAX_RE = re.compile(r"""[|&;<>()`$\n*?\[\]~{}'"\\#]""")
_SHELL_BUILTINS = frozenset({"!", ".", "cd", "eval", "exec", "exit", "export", "set", "source", "trap", "ulimit", "umask", "wait"})


#* --- Command Preparation ---
def expand_parameters(command_line: str, env: Mapping[str, str]) -> str:
    """
    Expands `$NAME` and `${NAME}` references from the given environment.
    Unset names expand to the empty string, as in a shell.

    :param command_line: The raw command line from the Procfile.
    :param env: The environment the process will run with.
    :return str: The expanded command line.
    """
    def _lookup(match: "re.Match") -> str:
        return env.get(match.group("braced") or match.group("bare"), "")

    return _PARAMETER_RE.sub(_lookup, command_line)


def needs_shell(command_line: str) -> bool:
    """Checks if a command line uses shell syntax (quoting included) beyond plain `$NAME` references."""
    return bool(_SHELL_SYNTAX_RE.search(_PARAMETER_RE.sub("", command_line)))


def build_argv(command_line: str, env: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Returns the argv that runs a command line.

    Plain commands are executed directly, so the spawned process is the target
    itself. Each word has its parameters expanded from `env` and the result is
    split on whitespace, as an unquoted expansion is in a shell. Anything with
    shell syntax, quoting or escapes included, runs unexpanded under
    `$PROCMUX_SHELL -f -c`, which expands the same references from the same
    environment; `-f` turns off pathname expansion.

    :param command_line: The raw command line from the Procfile.
    :param env: The environment the process will run with.
    :return list: The argument vector.
    """
    shell_argv = [settings.SHELL, "-f", "-c", command_line]
    words = command_line.split()
    if needs_shell(command_line) or not words:
        return shell_argv
    # Assignments and builtins are recognised before expansion.
    if "=" in words[0] or words[0] in _SHELL_BUILTINS:
        return shell_argv

    argv = [field for word in words for field in expand_parameters(word, env or {}).split()]
    if not argv:
        # Every word expanded to nothing; the shell runs that as a no-op.
        return shell_argv
    return argv


#* --- Process Status & Termination ---
def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)


def terminate_pid(pid: int) -> bool:
    """
    Sends SIGTERM to a single process.

    :param pid: The process to signal.
    :return bool: True if the signal was sent, False if the process was already gone.
    """
    try:
        proc = psutil.Process(pid)
        log.debug(f"Sending SIGTERM to {proc.name()} (PID {pid})")
        proc.terminate()
        return True
    except psutil.NoSuchProcess:
        log.debug(f"Process {pid} no longer exists, skipping termination.")
        return False
    except psutil.AccessDenied:
        log.warning(f"Access denied sending SIGTERM to PID {pid}.")
        return False


def terminate_pids(pids: Iterable[int]) -> int:
    """Sends SIGTERM to each PID and returns how many were signalled."""
    return sum(1 for pid in pids if terminate_pid(pid))


def terminate_process_group(pgid: int = 0) -> None:
    """
    Sends SIGTERM to an entire process group.

    :param pgid: The group to signal. Defaults to the caller's own group.
    """
    pgid = pgid or os.getpgrp()
    log.debug(f"Sending SIGTERM to process group {pgid}")
    try:
        os.killpg(pgid, signal.SIGTERM)
    except ProcessLookupError:
        log.debug(f"Process group {pgid} no longer exists.")
