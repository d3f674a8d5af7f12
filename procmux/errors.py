"""procmux exception hierarchy."""

import signal


class ProcmuxError(Exception):
    """Base error type for all supervisor failures."""

    exit_status = 1


class ConfigurationError(ProcmuxError):
    """A required resource (the Procfile) is missing or unusable."""

    exit_status = 2


class UsageError(ProcmuxError):
    """Internal misuse of a procmux utility, such as a multiplexer with no formatter."""

    exit_status = 1


class ChildFailure(ProcmuxError):
    """A supervised process exited non-zero. Recorded, never raised across the group."""

    def __init__(self, name: str, pid: int, returncode: int):
        super().__init__(f"Process '{name}' (PID {pid}) exited with status {returncode}")
        self.name = name
        self.pid = pid
        self.returncode = returncode


class SignalTermination(ProcmuxError):
    """An interrupt or terminate signal reached the supervisor."""

    def __init__(self, signum: int):
        try:
            signame = signal.Signals(signum).name
        except ValueError:
            signame = str(signum)
        super().__init__(f"Received {signame}, terminating process group")
        self.signum = signum
        self.signame = signame
        self.exit_status = 128 + signum
