from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import click

from pretty_autotest.runtime.executor import TestExecutor

# Delay between a single CTRL-C and the test re-run it requests.
RERUN_TIME = 2.0

HANDLED_SIGNALS = frozenset({signal.SIGINT, signal.SIGTERM})

logger = logging.getLogger(__name__)


class SignalHandler(Protocol):
    def handle_signal(self, signum: int) -> None: ...


class _Timer(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], _Timer]


def format_delay(seconds: float) -> str:
    return f"{seconds:g}s"


class InterruptHandler:
    """Two-stage CTRL-C handling.

    The first interrupt schedules a test re-run after ``rerun_delay``; a
    second one arriving before that re-run has finished exits the process.
    """

    def __init__(
        self,
        watch_dir: Path,
        *,
        executor: TestExecutor,
        exit_fn: Callable[[], None],
        echo: Callable[[str], None] = click.echo,
        rerun_delay: float = RERUN_TIME,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.watch_dir = watch_dir
        self._executor = executor
        self._exit_fn = exit_fn
        self._echo = echo
        self._rerun_delay = rerun_delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._hit_count = 0
        self._pending: _Timer | None = None

    @property
    def hit_count(self) -> int:
        with self._lock:
            return self._hit_count

    def handle_signal(self, signum: int) -> None:
        if signum not in HANDLED_SIGNALS:
            logger.debug("Ignoring signal %s", signum)
            return

        with self._lock:
            if self._hit_count > 0:
                pending, self._pending = self._pending, None
                exit_now = True
            else:
                self._hit_count = 1
                pending = self._timer_factory(self._rerun_delay, self._rerun)
                pending.daemon = True
                self._pending = pending
                exit_now = False

        if exit_now:
            if pending is not None:
                pending.cancel()
            self._exit_fn()
            return

        self._echo(
            "Hit CTRL-C again to exit otherwise tests will be re-run in "
            f"{format_delay(self._rerun_delay)}."
        )
        pending.start()

    def _rerun(self) -> None:
        try:
            self._executor.try_run(self.watch_dir)
        finally:
            with self._lock:
                self._hit_count = 0
                self._pending = None
