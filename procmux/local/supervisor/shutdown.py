import signal
import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from procmux.errors import ProcmuxError, SignalTermination
from procmux.local.supervisor import process_utils

log = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


#* --- Kill Strategies ---
class KillStrategy:
    """Decides which processes receive SIGTERM when the group shuts down."""
    name = "base"

    def kill(self) -> None:
        raise NotImplementedError


class GroupKill(KillStrategy):
    """
    Signals the entire OS process group. Anything sharing the group is killed
    too, including the caller when it did not start procmux in its own group.
    """
    name = "whole-group"

    def __init__(self, pgid: int = 0) -> None:
        self.pgid = pgid

    def kill(self) -> None:
        process_utils.terminate_process_group(self.pgid)


class SelectiveKill(KillStrategy):
    """Signals only the explicitly tracked processes."""
    name = "selective"

    def __init__(self, pids: Callable[[], Iterable[int]]) -> None:
        """
        :param pids: Returns the tracked PIDs at the moment of the kill, so
                     processes spawned after construction are still covered.
        """
        self.pids = pids

    def kill(self) -> None:
        tracked = list(self.pids())
        signalled = process_utils.terminate_pids(tracked)
        log.debug(f"Selective kill signalled {signalled} of {len(tracked)} tracked processes.")


def build_strategy(selective: bool, pids: Callable[[], Iterable[int]]) -> KillStrategy:
    """Picks the kill strategy once, at startup."""
    return SelectiveKill(pids) if selective else GroupKill()


#* --- Coordinator ---
class ShutdownCoordinator:
    """
    One-shot shutdown broadcast.

    `trigger` runs at most once per coordinator: it ignores further INT/TERM
    signals, issues the kill through the strategy, sets `cancelled`, and then
    notifies subscribers. Every later trigger returns False without acting.
    """

    def __init__(self, strategy: KillStrategy) -> None:
        self.strategy = strategy
        self.cancelled = threading.Event()
        self.reason: Optional[ProcmuxError] = None
        self._once = threading.Lock()
        self._subscribers: List[Callable[[], None]] = []
        self._previous_handlers: Dict[int, object] = {}

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()

    def install(self) -> None:
        """Installs the INT/TERM handlers, remembering the ones they replace."""
        for signum in HANDLED_SIGNALS:
            previous = signal.signal(signum, self._handle_signal)
            self._previous_handlers.setdefault(signum, previous)
        log.debug(f"Termination handlers installed ({self.strategy.name} mode).")

    def restore(self) -> None:
        """Reinstates the handlers that were active before `install`."""
        if not self._can_touch_handlers():
            return
        for signum, previous in self._previous_handlers.items():
            signal.signal(signum, previous if previous is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def subscribe(self, callback: Callable[[], None]) -> None:
        """
        Registers a cancellation callback. Subscribing after the broadcast
        runs the callback immediately.

        No lock is taken: the signal handler may run `trigger` on this same
        thread mid-call. Whichever side removes the callback from the list runs
        it, so it runs exactly once.
        """
        self._subscribers.append(callback)
        if not self.cancelled.is_set():
            return
        try:
            self._subscribers.remove(callback)
        except ValueError:
            # trigger already took it.
            return
        callback()

    def trigger(self, reason: Optional[ProcmuxError] = None) -> bool:
        """
        Shuts the group down.

        :param reason: What caused the shutdown; a SignalTermination for signals.
        :return bool: True for the call that performed the shutdown, False otherwise.
        """
        if not self._once.acquire(blocking=False):
            return False

        self._clear_handlers()
        self.reason = reason
        if reason is not None:
            log.info(str(reason))
        self.cancelled.set()

        try:
            self.strategy.kill()
        finally:
            while self._subscribers:
                try:
                    callback = self._subscribers.pop(0)
                except IndexError:
                    break
                try:
                    callback()
                except Exception as e:
                    log.error(f"Cancellation callback failed: {e}", exc_info=True)
        return True

    def _handle_signal(self, signum, frame) -> None:
        """Converts an INT/TERM signal into the group shutdown."""
        self.trigger(SignalTermination(signum))

    def _clear_handlers(self) -> None:
        """Ignores INT/TERM so the kill cannot re-enter or take down this process."""
        if not self._can_touch_handlers():
            return
        for signum in HANDLED_SIGNALS:
            signal.signal(signum, signal.SIG_IGN)

    def _can_touch_handlers(self) -> bool:
        # signal.signal only works from the main thread.
        return bool(self._previous_handlers) and threading.current_thread() is threading.main_thread()
