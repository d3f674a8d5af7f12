import sys
import logging
from typing import List, Optional

from procmux.errors import ConfigurationError, ProcmuxError
from procmux.log.setup import setup_logging
from procmux.local.console import execute_command, print_usage
from procmux.local.console.handler import USAGE_EXIT_STATUS

log = logging.getLogger("console")


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the procmux command."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        setup_logging()
        print_usage()
        return USAGE_EXIT_STATUS

    command, args = argv[0], argv[1:]

    # Only 'start' takes the flag; 'exec' passes everything to its target.
    console_level = None
    if command == "start" and "--verbose" in args:
        console_level = logging.DEBUG
        args.remove("--verbose")
    setup_logging(console_level)

    try:
        return execute_command(command, args)
    except ConfigurationError as e:
        print(f"procmux: {e}", file=sys.stderr)
        print_usage()
        return e.exit_status
    except ProcmuxError as e:
        log.error(str(e))
        return e.exit_status


if __name__ == "__main__":
    sys.exit(main())
