"""
The child wrapper: everything that happens around one supervised command.

A wrapper expands the command's parameters, spawns the target with stdout and
stderr merged into a single pipe, and attaches a LogMultiplexer thread to that
pipe. The supervisor owns one wrapper per Procfile entry; `procmux exec` runs a
single wrapper in the foreground with its own termination handling.
"""
import shlex
import logging
import subprocess
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional

from procmux import settings
from procmux.local.supervisor import process_utils
from procmux.local.supervisor.multiplexer import LogMultiplexer
from procmux.local.supervisor.shutdown import ShutdownCoordinator, build_strategy

log = logging.getLogger(__name__)

# How often a draining wrapper re-checks for cancellation.
DRAIN_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class ChildConfig:
    """Everything a wrapper needs, passed explicitly rather than through the environment."""
    name: str
    command_line: str
    color: str
    pad_width: int
    env: Mapping[str, str] = field(default_factory=dict)


class ChildWrapper:
    """Runs one target command and forwards its output through a LogMultiplexer."""

    def __init__(self, config: ChildConfig, sink: Optional[Callable[[str], None]] = None) -> None:
        self.config = config
        self.multiplexer = LogMultiplexer.for_process(config.name, config.color, config.pad_width, sink)
        self.process: Optional[subprocess.Popen] = None
        self.reader: Optional[threading.Thread] = None
        self.argv: List[str] = []
        self.cancelled = threading.Event()
        self.spawn_error: Optional[OSError] = None

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> Optional[int]:
        if self.spawn_error is not None:
            return _spawn_error_status(self.spawn_error)
        return self.process.returncode if self.process else None

    def start(self) -> Optional[int]:
        """
        Builds the argv for the command line and spawns the target with its multiplexer.

        A target that cannot be executed is reported in its own output stream
        and ends with a shell-style status (127 not found, 126 not executable),
        like any other failing child.

        :return int: The PID of the target process, or None if it could not be spawned.
        """
        env = dict(self.config.env)
        self.argv = process_utils.build_argv(self.config.command_line, env)

        log.info(f"Starting process: {self.config.name} ({shlex.join(self.argv)})")
        try:
            self.process = subprocess.Popen(
                self.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                env=env,
            )
        except OSError as e:
            self.spawn_error = e
            self.multiplexer.emit(f"{self.argv[0]}: {e.strerror or e}")
            log.error(f"Failed to start process '{self.config.name}': {e}")
            return None

        self.reader = self.multiplexer.start(self.process.stdout, self.config.name)
        log.info(f"{self.config.name} started with PID: {self.process.pid}")
        return self.process.pid

    def wait(self) -> int:
        """
        Blocks until the target exits, then lets the multiplexer drain the pipe.
        Draining stops early once the wrapper is cancelled.

        :return int: The target's return code (negative for a signal, as in Popen).
        """
        if self.spawn_error is not None:
            return _spawn_error_status(self.spawn_error)
        if self.process is None:
            raise RuntimeError(f"Process '{self.config.name}' was never started")

        returncode = self.process.wait()
        while self.reader is not None and self.reader.is_alive() and not self.cancelled.is_set():
            self.reader.join(DRAIN_POLL_INTERVAL)
        log.info(f"{self.config.name} (PID {self.process.pid}) exited with status {returncode}")
        return returncode

    def terminate(self) -> bool:
        """Sends SIGTERM to the target if it is still running."""
        if self.process is None or self.process.poll() is not None:
            return False
        return process_utils.terminate_pid(self.process.pid)

    def cancel(self) -> None:
        """Stops waiting on the multiplexer; an abandoned reader dies with the process."""
        self.cancelled.set()


def _spawn_error_status(error: OSError) -> int:
    return 126 if isinstance(error, PermissionError) else 127


def run_child(config: ChildConfig, selective: Optional[bool] = None,
              sink: Optional[Callable[[str], None]] = None) -> int:
    """
    Runs a single wrapper in the foreground with its own termination handling.

    A signal shuts down the wrapper's target (selective mode) or the whole
    process group, and cancels the multiplexer.

    :param config: The child configuration.
    :param selective: Termination mode; defaults to the PROCMUX_SELECTIVE_KILL setting.
    :param sink: Optional line sink, defaulting to the proc logger.
    :return int: The target's return code.
    """
    if selective is None:
        selective = settings.is_selective_kill()

    wrapper = ChildWrapper(config, sink)
    coordinator = ShutdownCoordinator(
        build_strategy(selective, lambda: [wrapper.pid] if wrapper.pid and wrapper.returncode is None else [])
    )
    coordinator.subscribe(wrapper.cancel)
    coordinator.install()
    try:
        wrapper.start()
        return wrapper.wait()
    finally:
        coordinator.restore()
