import logging
import sys

from procmux import settings


class SubprocessLogFilter(logging.Filter):
    """
    This filter identifies logs coming from the subprocess loggers.
    With `invert=True` it rejects them instead, so the diagnostics handler
    never formats a multiplexed line a second time.
    """
    def __init__(self, invert: bool = False):
        super().__init__()
        self.invert = invert

    def filter(self, record):
        is_proc = record.name.startswith(settings.PROC_LOGGER_PREFIX)
        return not is_proc if self.invert else is_proc


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw subprocess logs."""

    def __init__(self):
        super().__init__(settings.LOG_FORMAT)

    def format(self, record):
        # Subprocess lines arrive fully formatted by the multiplexer.
        if record.name.startswith(settings.PROC_LOGGER_PREFIX):
            return record.getMessage()
        return super().format(record)


def setup_logging(console_level=None) -> None:
    """
    Configures the root logger for the application.
    Multiplexed process output goes to stdout untouched, while the supervisor's
    own diagnostics go to stderr. Previously configured handlers are cleared to
    prevent duplication.

    :param console_level: The logging level for diagnostics (e.g., logging.INFO).
                          Defaults to the PROCMUX_LOG_LEVEL setting.
    """
    if console_level is None:
        console_level = logging.getLevelName(settings.LOG_LEVEL)
        if not isinstance(console_level, int):
            console_level = logging.WARNING

    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    # --- Process Output Handler ---
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(logging.DEBUG)
    stream_handler.addFilter(SubprocessLogFilter())
    stream_handler.setFormatter(MainFormatter())
    root_logger.addHandler(stream_handler)

    # --- Diagnostics Handler ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.addFilter(SubprocessLogFilter(invert=True))
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)
