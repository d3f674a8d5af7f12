import logging
from typing import List

from procmux.local.console.handler import USAGE_EXIT_STATUS, handle_exec, handle_source, handle_start, print_usage

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str]) -> int:
    """
    Executes a single command.

    :param command: The main command string (e.g., 'start', 'exec').
    :param args: A list of arguments for the command.
    :return int: The exit status for the process.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": lambda: handle_start(args),
        "exec": lambda: handle_exec(args),
        "source": lambda: handle_source(args),
    }

    if command in command_map:
        return command_map[command]()

    log.debug(f"Unknown command: '{command}'.")
    print_usage()
    return USAGE_EXIT_STATUS
