"""Tests for command preparation and psutil-backed termination helpers."""

import os
import subprocess
import sys

import psutil
import pytest

from procmux import settings
from procmux.local.supervisor import process_utils
from procmux.local.supervisor.process_utils import build_argv, expand_parameters, needs_shell


class TestExpandParameters:
    def test_bare_and_braced_references(self):
        env = {"PORT": "5000", "HOST": "0.0.0.0"}
        assert expand_parameters("serve --bind ${HOST}:$PORT", env) == "serve --bind 0.0.0.0:5000"

    def test_unset_names_expand_to_empty(self):
        assert expand_parameters("echo [$MISSING]", {}) == "echo []"

    def test_non_parameters_are_untouched(self):
        assert expand_parameters("echo $1 $$ cost: 5$", {}) == "echo $1 $$ cost: 5$"


class TestBuildArgv:
    def test_plain_command_is_split(self):
        assert build_argv("python -m http.server 8000") == ["python", "-m", "http.server", "8000"]

    @pytest.mark.parametrize("command", [
        "echo 'hello world'",
        "echo '$HOME'",
        'echo "$HOME"',
        r"echo \$HOME",
    ])
    def test_quoting_and_escapes_are_left_to_the_shell(self, command):
        assert build_argv(command, {"HOME": "/expanded"}) == [settings.SHELL, "-f", "-c", command]

    def test_quotes_inside_values_are_not_reparsed(self):
        env = {"MSG": "'a b' \"c\""}
        assert build_argv("echo $MSG", env) == ["echo", "'a", "b'", '"c"']

    def test_empty_expansion_drops_the_word(self):
        assert build_argv("serve $UNSET --debug", {}) == ["serve", "--debug"]

    def test_plain_path_matches_the_shell(self, tmp_path):
        env = {"PATH": os.environ["PATH"], "MSG": "'a  b'  \"c\" *"}
        (tmp_path / "match.txt").write_text("")
        command = "echo $MSG ${MSG}"
        direct = subprocess.run(build_argv(command, env), cwd=str(tmp_path), env=env,
                                capture_output=True, text=True, check=True).stdout
        shell = subprocess.run([settings.SHELL, "-f", "-c", command], cwd=str(tmp_path), env=env,
                               capture_output=True, text=True, check=True).stdout
        assert direct == shell

    def test_plain_command_is_expanded_before_split(self):
        env = {"ARGS": "--port 5000", "NAME": "web"}
        assert build_argv("serve ${NAME} $ARGS", env) == ["serve", "web", "--port", "5000"]

    def test_parameter_references_alone_do_not_need_a_shell(self):
        assert not needs_shell("serve $PORT ${HOST}")
        assert needs_shell("echo $1")

    def test_shell_commands_are_left_for_the_shell_to_expand(self):
        command = "for i in 1 2; do echo $i; done"
        assert build_argv(command, {"i": "clobbered"}) == [settings.SHELL, "-f", "-c", command]

    @pytest.mark.parametrize("command", [
        "sleep 1 && echo up",
        "echo a | tr a b",
        "run > out.log",
        "echo *.py",
    ])
    def test_shell_syntax_uses_noglob_shell(self, command):
        assert needs_shell(command)
        assert build_argv(command) == [settings.SHELL, "-f", "-c", command]

    def test_env_prefix_uses_shell(self):
        assert build_argv("DEBUG=1 serve")[:3] == [settings.SHELL, "-f", "-c"]

    def test_builtin_uses_shell(self):
        assert build_argv("exec serve")[:3] == [settings.SHELL, "-f", "-c"]

    def test_unbalanced_quote_uses_shell(self):
        assert build_argv("echo 'oops")[:3] == [settings.SHELL, "-f", "-c"]

    def test_noglob_shell_keeps_literal_star(self, tmp_path):
        (tmp_path / "match.txt").write_text("")
        output = subprocess.run(build_argv("echo *.txt; true"), cwd=str(tmp_path),
                                capture_output=True, text=True, check=True).stdout
        assert output.strip() == "*.txt"


class TestTermination:
    def test_terminate_running_process(self):
        proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
        try:
            assert process_utils.pid_exists(proc.pid)
            assert process_utils.terminate_pid(proc.pid) is True
            assert proc.wait(timeout=10) < 0
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

    def test_terminate_missing_process(self, monkeypatch):
        def _gone(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "Process", _gone)
        assert process_utils.terminate_pid(424242) is False

    def test_terminate_pids_counts_signalled(self, monkeypatch):
        monkeypatch.setattr(process_utils, "terminate_pid", lambda pid: pid % 2 == 0)
        assert process_utils.terminate_pids([1, 2, 4]) == 2

    def test_terminate_process_group_defaults_to_own_group(self, monkeypatch):
        calls = []
        monkeypatch.setattr(process_utils.os, "killpg", lambda pgid, sig: calls.append((pgid, sig)))
        process_utils.terminate_process_group()
        assert calls == [(process_utils.os.getpgrp(), process_utils.signal.SIGTERM)]
