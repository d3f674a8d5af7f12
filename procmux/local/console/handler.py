import os
import sys
import shlex
import logging
import setproctitle
from pathlib import Path
from typing import List

from procmux import settings
from procmux.errors import SignalTermination
from procmux.local.supervisor import Supervisor, startup
from procmux.local.supervisor.child import ChildConfig, run_child
from procmux.local.supervisor.multiplexer import pick_color

log = logging.getLogger(__name__)

USAGE_EXIT_STATUS = 2


def print_usage() -> None:
    """Prints the two-line usage text to stderr."""
    print(f"Usage: {settings.PROCESS_TITLE} start [--verbose] | exec <name> <command...> | source", file=sys.stderr)
    print(f"Runs every process in ./{settings.PROCFILE_NAME} with overrides from ./{settings.ENV_FILE_NAME}.", file=sys.stderr)


def _exit_status(returncode: int) -> int:
    """Maps a Popen return code to a shell exit status (signals become 128+N)."""
    return 128 - returncode if returncode < 0 else returncode


def handle_start(args: List[str]) -> int:
    """
    Handles the 'start' command: load the Procfile and .env from the current
    directory, then supervise every process until the group exits.

    :param args: Extra arguments (unused).
    :return int: 0 after a normal group exit, 128+N after signal N.
    :raises ConfigurationError: If the Procfile does not exist.
    """
    definitions, overrides = startup.load_run_inputs(Path.cwd())
    setproctitle.setproctitle(f"{settings.PROCESS_TITLE} - Supervisor")

    manager = Supervisor(definitions, overrides)
    manager.run()

    reason = manager.coordinator.reason
    if isinstance(reason, SignalTermination):
        return reason.exit_status
    return 0


def handle_exec(args: List[str]) -> int:
    """
    Handles the 'exec' command: run one named command through the child
    wrapper in the foreground.

    :param args: The process name followed by the command (one quoted string or several words).
    :return int: The target's exit status.
    """
    if len(args) < 2:
        print_usage()
        return USAGE_EXIT_STATUS

    name, command_args = args[0], args[1:]
    command_line = command_args[0] if len(command_args) == 1 else shlex.join(command_args)
    setproctitle.setproctitle(f"{settings.PROCESS_TITLE} - {name}")

    config = ChildConfig(
        name=name,
        command_line=command_line,
        color=pick_color(0),
        pad_width=len(name),
        env=dict(os.environ),
    )
    return _exit_status(run_child(config))


def handle_source(args: List[str]) -> int:
    """Handles the 'source' command, which loads nothing and changes nothing."""
    log.debug("source: nothing to do.")
    return 0
