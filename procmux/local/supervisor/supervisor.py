import os
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, MutableMapping, Optional

from procmux import settings
from procmux.errors import ChildFailure
from procmux.local.procfile import EnvironmentOverride, ProcessDefinition
from procmux.local.supervisor.child import ChildConfig, ChildWrapper
from procmux.local.supervisor.multiplexer import compute_pad_width, pick_color
from procmux.local.supervisor.shutdown import KillStrategy, ShutdownCoordinator, build_strategy
from procmux.local.supervisor.startup import apply_overrides

log = logging.getLogger(__name__)


@dataclass
class RunningProcess:
    """A spawned Procfile entry. `returncode` is set once the process is reaped."""
    definition: ProcessDefinition
    color: str
    wrapper: ChildWrapper = field(repr=False)
    pid: Optional[int] = None
    returncode: Optional[int] = None

    @property
    def name(self) -> str:
        return self.definition.name


class Supervisor:
    """
    Launches every Procfile entry concurrently, multiplexes their output, and
    makes sure the whole group goes down together.
    """

    def __init__(
        self,
        definitions: Iterable[ProcessDefinition],
        overrides: Iterable[EnvironmentOverride] = (),
        selective: Optional[bool] = None,
        environ: Optional[MutableMapping[str, str]] = None,
        sink: Optional[Callable[[str], None]] = None,
        strategy: Optional[KillStrategy] = None,
    ) -> None:
        """
        :param definitions: The process definitions, in Procfile order.
        :param overrides: Environment overrides applied before anything is spawned.
        :param selective: Termination mode; defaults to the PROCMUX_SELECTIVE_KILL setting.
        :param environ: The environment to apply overrides to. Defaults to os.environ.
        :param sink: Optional line sink shared by all multiplexers (defaults to the proc loggers).
        :param strategy: Explicit kill strategy, overriding `selective`.
        """
        self.definitions: List[ProcessDefinition] = list(definitions)
        self.overrides: List[EnvironmentOverride] = list(overrides)
        self.environ = os.environ if environ is None else environ
        self.sink = sink
        self.selective = settings.is_selective_kill() if selective is None else selective

        # Fixed for the whole run, before anything is spawned.
        self.pad_width = compute_pad_width(d.name for d in self.definitions)
        self.launch_counter = 0
        self.running_procs: List[RunningProcess] = []
        self._waiters: List[threading.Thread] = []

        self.coordinator = ShutdownCoordinator(strategy or build_strategy(self.selective, self.tracked_pids))

    def tracked_pids(self) -> List[int]:
        """PIDs of spawned processes that have not been reaped yet."""
        return [
            proc.pid for proc in self.running_procs
            if proc.pid is not None and proc.wrapper.returncode is None
        ]

    @property
    def failures(self) -> List[ChildFailure]:
        """The processes that exited non-zero, in launch order."""
        return [
            ChildFailure(proc.name, proc.pid, proc.returncode)
            for proc in self.running_procs
            if proc.returncode not in (None, 0)
        ]

    def run(self) -> List[RunningProcess]:
        """
        Runs the whole group: applies overrides, spawns every process, and blocks
        until all of them have exited. The group is shut down on the way out
        whether the run ends normally, by signal, or by error.

        :return list: The RunningProcess records, in launch order.
        """
        apply_overrides(self.overrides, self.environ)

        self.coordinator.install()
        try:
            self.start_all()
            self.wait_all()
        finally:
            if self.coordinator.trigger():
                log.debug("All processes exited, shutting down the group.")
            self.coordinator.restore()
        return self.running_procs

    def start_all(self) -> None:
        """Spawns every definition in Procfile order, stopping early if shutdown began."""
        log.info(f"Starting {len(self.definitions)} processes ({self.coordinator.strategy.name} termination).")
        for definition in self.definitions:
            if self.coordinator.is_cancelled:
                log.warning("Shutdown requested during startup. Remaining processes were not started.")
                break
            self.launch_process(definition)

    def launch_process(self, definition: ProcessDefinition) -> RunningProcess:
        """
        Spawns a single definition and starts a thread waiting on it.

        :param definition: The process definition.
        :return RunningProcess: The tracking record.
        """
        color = pick_color(self.launch_counter)
        self.launch_counter += 1

        config = ChildConfig(
            name=definition.name,
            command_line=definition.command_line,
            color=color,
            pad_width=self.pad_width,
            env=dict(self.environ),
        )
        wrapper = ChildWrapper(config, self.sink)
        pid = wrapper.start()

        running = RunningProcess(definition=definition, color=color, wrapper=wrapper, pid=pid)
        self.running_procs.append(running)
        self.coordinator.subscribe(wrapper.cancel)

        # A signal may have landed while the process was being spawned.
        if self.coordinator.is_cancelled:
            wrapper.terminate()

        waiter = threading.Thread(
            target=self._wait_for,
            args=(running,),
            daemon=True,
            name=f"Waiter-{definition.name}-{self.launch_counter}",
        )
        waiter.start()
        self._waiters.append(waiter)
        return running

    def wait_all(self) -> None:
        """Blocks until every spawned process has exited."""
        for waiter in self._waiters:
            waiter.join()

    def _wait_for(self, running: RunningProcess) -> None:
        running.returncode = running.wrapper.wait()
        if running.returncode != 0 and not self.coordinator.is_cancelled:
            # Siblings keep running; a failing child never takes the group down.
            log.warning(str(ChildFailure(running.name, running.pid, running.returncode)))
