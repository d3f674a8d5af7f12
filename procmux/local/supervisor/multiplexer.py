import time
import logging
import threading
from typing import BinaryIO, Callable, Iterable, Optional

from termcolor import colored

from procmux import settings
from procmux.errors import UsageError

log = logging.getLogger(__name__)


#* --- Color & Alignment ---
def pick_color(index: int) -> str:
    """
    Maps a launch index to one of the fixed colors, cyclically.

    :param index: The non-negative launch index.
    :return str: A termcolor color name.
    :raises ValueError: If the index is negative.
    """
    if index < 0:
        raise ValueError(f"Launch index must be non-negative, got {index}")
    return settings.COLORS[index % len(settings.COLORS)]


def compute_pad_width(names: Iterable[str]) -> int:
    """Returns the longest name length, or 0 when there are no names."""
    return max((len(name) for name in names), default=0)


def make_prefix(name: str, pad_width: int) -> str:
    """Pads the name so every separator lands in the same column."""
    return name + " " * (pad_width - len(name) + 1) + settings.SEPARATOR


#* --- Line Formatting ---
class LineFormatter:
    """Renders one output line as `<color><timestamp> <prefix><reset> <line>`."""

    def __init__(
        self,
        prefix: str,
        color: str,
        clock: Callable[[], time.struct_time] = time.localtime,
        force_color: Optional[bool] = None,
    ) -> None:
        self.prefix = prefix
        self.color = color
        self.clock = clock
        self.force_color = force_color

    def _color_flags(self) -> dict:
        if self.force_color is None:
            return settings.force_color_flags()
        return {"force_color": True} if self.force_color else {"no_color": True}

    def format(self, line: str) -> str:
        timestamp = time.strftime(settings.TIMESTAMP_FORMAT, self.clock())
        header = colored(f"{timestamp} {self.prefix}", self.color, **self._color_flags())
        # Doubled so the renderer never reads a backslash as an escape.
        escaped = line.replace("\\", "\\\\")
        return f"{header} {escaped}"


#* --- Multiplexer ---
def _proc_logger_sink(name: str) -> Callable[[str], None]:
    """Returns a sink writing raw lines through the `proc.<name>` logger."""
    proc_logger = logging.getLogger(f"{settings.PROC_LOGGER_PREFIX}{name}")
    return proc_logger.info


class LogMultiplexer:
    """
    Consumes a line-oriented byte stream and forwards each line, formatted,
    to a shared sink. One instance runs per supervised process.
    """

    def __init__(self, formatter: Optional[LineFormatter], sink: Callable[[str], None]) -> None:
        """
        :param formatter: The LineFormatter for this process's lines.
        :param sink: Callable receiving each formatted line.
        :raises UsageError: If no formatter is configured.
        """
        if formatter is None:
            raise UsageError("LogMultiplexer requires a line formatter")
        self.formatter = formatter
        self.sink = sink
        self.lines_emitted = 0

    @classmethod
    def for_process(cls, name: str, color: str, pad_width: int,
                    sink: Optional[Callable[[str], None]] = None) -> "LogMultiplexer":
        """Builds a multiplexer for a named process, defaulting to the proc logger sink."""
        formatter = LineFormatter(make_prefix(name, pad_width), color)
        return cls(formatter, sink or _proc_logger_sink(name))

    def emit(self, line: str) -> None:
        """Formats a single line and hands it to the sink."""
        self.sink(self.formatter.format(line))
        self.lines_emitted += 1

    def run(self, stream: BinaryIO) -> int:
        """
        Reads the stream until end-of-input, emitting every line.

        Only the trailing newline is removed, so trailing whitespace survives,
        and a final line without a newline is still emitted.

        :param stream: A binary stream, typically a subprocess pipe.
        :return int: The number of lines emitted.
        """
        try:
            for line_bytes in iter(stream.readline, b""):
                if line_bytes.endswith(b"\n"):
                    line_bytes = line_bytes[:-1]
                self.emit(line_bytes.decode("utf-8", errors="replace"))
        except (OSError, ValueError) as e:
            # The pipe was closed underneath the reader.
            log.debug(f"Multiplexer for '{self.formatter.prefix}' stopped reading: {e}")
        finally:
            stream.close()
        return self.lines_emitted

    def start(self, stream: BinaryIO, name: str) -> threading.Thread:
        """Runs the multiplexer in a background daemon thread."""
        reader = threading.Thread(
            target=self.run,
            args=(stream,),
            daemon=True,
            name=f"Multiplexer-{name}",
        )
        reader.start()
        return reader
