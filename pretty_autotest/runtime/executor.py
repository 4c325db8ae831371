"""Single-flight execution of the project's test command."""
from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

import click

logger = logging.getLogger(__name__)

CommandRunner = Callable[[list[str], Path], tuple[str, int]]


def build_test_command(tool: str, args: Sequence[str] = ()) -> list[str]:
    return [tool, "test", *args]


def execute_command(command: list[str], cwd: Path) -> tuple[str, int]:
    completed = subprocess.run(
        command,
        cwd=cwd,
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
    )
    return completed.stdout or "", completed.returncode


class RunGuard:
    """Boolean "a run is in flight" flag with an atomic check-and-set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running = False

    def try_acquire(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def release(self) -> None:
        with self._lock:
            self._running = False

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running


class TestExecutor:
    """Run ``<tool> test <args>`` on a background thread, one run at a time."""

    __test__ = False

    def __init__(
        self,
        guard: RunGuard,
        *,
        tool: str = "go",
        args: Sequence[str] = (),
        runner: CommandRunner = execute_command,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self._guard = guard
        self._tool = tool
        self._args = list(args)
        self._runner = runner
        self._echo = echo
        self._thread: threading.Thread | None = None

    @property
    def guard(self) -> RunGuard:
        return self._guard

    def try_run(self, work_dir: Path, extra_args: Sequence[str] | None = None) -> bool:
        if not self._guard.try_acquire():
            logger.debug("Aborting run, tests not finished running.")
            return False

        args = self._args if extra_args is None else list(extra_args)
        command = build_test_command(self._tool, args)
        try:
            thread = threading.Thread(
                target=self._run,
                args=(command, work_dir),
                name="pretty-autotest-run",
                daemon=True,
            )
            thread.start()
        except BaseException:
            self._guard.release()
            raise
        self._thread = thread
        return True

    def wait(self, timeout: float | None = None) -> bool:
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self, command: list[str], work_dir: Path) -> None:
        try:
            try:
                output, returncode = self._runner(command, work_dir)
            except OSError as exc:
                logger.error("Could not start %s: %s", command[0], exc)
                return
            if returncode != 0:
                logger.error("%s exited with status %d", " ".join(command), returncode)
            if output:
                self._echo(output.rstrip("\n"))
        finally:
            self._guard.release()
