"""
Pytest configuration and fixtures.
"""

import os
import queue
import re
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


class LineSink:
    """Collects formatted lines from any number of multiplexer threads."""

    def __init__(self) -> None:
        self.lines: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        with self._lock:
            self.lines.append(line)

    @property
    def plain(self) -> List[str]:
        with self._lock:
            return [strip_ansi(line) for line in self.lines]

    def for_prefix(self, prefix: str) -> List[str]:
        """The message part of every line carrying the given prefix."""
        marker = f" {prefix} "
        return [line.split(marker, 1)[1] for line in self.plain if marker in line]


class OutputReader:
    """Reads a subprocess's stdout in the background so tests can wait on lines."""

    def __init__(self, stream) -> None:
        self.lines: List[str] = []
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._thread = threading.Thread(target=self._pump, args=(stream,), daemon=True)
        self._thread.start()

    def _pump(self, stream) -> None:
        for raw in iter(stream.readline, b""):
            self._queue.put(raw.decode("utf-8", errors="replace").rstrip("\n"))
        self._queue.put(None)

    def wait_for(self, predicate: Callable[[str], bool], count: int = 1, timeout: float = 10.0) -> List[str]:
        """Blocks until `count` lines match, failing the test on timeout or EOF."""
        deadline = time.monotonic() + timeout
        matched = [line for line in self.lines if predicate(line)]
        while len(matched) < count:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                pytest.fail(f"Timed out waiting for output; got {self.lines!r}")
            try:
                line = self._queue.get(timeout=remaining)
            except queue.Empty:
                continue
            if line is None:
                pytest.fail(f"Output ended early; got {self.lines!r}")
            self.lines.append(line)
            if predicate(line):
                matched.append(line)
        return matched

    def drain(self, timeout: float = 10.0) -> List[str]:
        """Collects everything up to end-of-output."""
        self._thread.join(timeout)
        while True:
            try:
                line = self._queue.get_nowait()
            except queue.Empty:
                break
            if line is not None:
                self.lines.append(line)
        return self.lines


@pytest.fixture
def sink() -> LineSink:
    return LineSink()


@pytest.fixture
def fixed_clock():
    """A clock frozen at 12:34:56."""
    frozen = time.struct_time((2024, 1, 2, 12, 34, 56, 1, 2, -1))
    return lambda: frozen


@pytest.fixture
def test_env() -> dict:
    """A copy of the environment with procmux importable and colors off."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), env.get("PYTHONPATH")]))
    env["PROCMUX_COLOR"] = "never"
    env.pop("PROCMUX_SELECTIVE_KILL", None)
    return env


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A working directory for a procmux run."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def spawn_procmux(project_dir: Path, test_env: dict):
    """
    Starts `python -m procmux.main` in its own session, so whole-group
    termination never reaches the test runner.
    """
    started: List[subprocess.Popen] = []

    def _spawn(*args: str, env: Optional[dict] = None, argv: Optional[List[str]] = None) -> subprocess.Popen:
        command = argv or [sys.executable, "-m", "procmux.main", *args]
        proc = subprocess.Popen(
            command,
            cwd=str(project_dir),
            env=env or test_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
        started.append(proc)
        return proc

    yield _spawn

    for proc in started:
        if proc.poll() is None:
            try:
                os.killpg(proc.pid, 9)
            except ProcessLookupError:
                pass
            proc.wait()
        for stream in (proc.stdout, proc.stderr):
            if stream:
                stream.close()
