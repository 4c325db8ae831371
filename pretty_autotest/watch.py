"""File-watching auto-test loop for ``pta``."""
from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import click

from pretty_autotest.runtime.debounce import DebounceFilter
from pretty_autotest.runtime.events import Notification
from pretty_autotest.runtime.executor import TestExecutor
from pretty_autotest.runtime.source import NotificationSource

WatchState = Literal["idle", "running", "paused", "terminated"]

logger = logging.getLogger(__name__)


class WatchError(RuntimeError):
    """Raised when the directory cannot be watched or the watch breaks."""


@dataclass(slots=True)
class _Control:
    kind: Literal["pause", "terminate"]
    ack: threading.Event = field(default_factory=threading.Event)


class WatcherLoop:
    """Re-run tests on accepted changes under *watch_dir*.

    ``pause()`` and ``terminate()`` block until the loop acknowledges.
    """

    def __init__(
        self,
        watch_dir: Path,
        *,
        executor: TestExecutor,
        debounce: DebounceFilter,
        source: NotificationSource,
        echo: Callable[[str], None] = click.echo,
    ) -> None:
        self.watch_dir = watch_dir
        self._executor = executor
        self._debounce = debounce
        self._source = source
        self._echo = echo
        self._inbox: queue.Queue[_Control | Notification | BaseException] = queue.Queue()
        self._state_lock = threading.Lock()
        self._state: WatchState = "idle"

    @property
    def state(self) -> WatchState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: WatchState) -> None:
        with self._state_lock:
            self._state = state

    def notify(self, notification: Notification) -> None:
        self._inbox.put(notification)

    def fail(self, exc: BaseException) -> None:
        self._inbox.put(exc)

    def pause(self, timeout: float | None = None) -> bool:
        return self._handshake("pause", timeout)

    def terminate(self, timeout: float | None = None) -> bool:
        return self._handshake("terminate", timeout)

    def _handshake(self, kind: Literal["pause", "terminate"], timeout: float | None) -> bool:
        control = _Control(kind)
        with self._state_lock:
            if self._state == "idle" and kind == "terminate":
                self._state = "terminated"
            if self._state in ("idle", "terminated"):
                return kind == "terminate"
            # Queued under the lock so run() drains it if the loop is exiting.
            self._inbox.put(control)
        return control.ack.wait(timeout)

    def run(self) -> None:
        with self._state_lock:
            if self._state == "terminated":
                return
            self._state = "running"

        try:
            # Baseline run before any change is seen.
            self._executor.try_run(self.watch_dir)

            try:
                self._source.watch(self.watch_dir, self.notify, self.fail)
            except Exception as exc:
                raise WatchError(f"Cannot watch {self.watch_dir}: {exc}") from exc
            self._echo(f"Start watching path {self.watch_dir}")

            self._loop()
        finally:
            self._set_state("terminated")
            self._release_pending()

    def _loop(self) -> None:
        while True:
            item = self._inbox.get()
            if isinstance(item, _Control):
                if item.kind == "terminate":
                    self._source.close()
                    self._set_state("terminated")
                    item.ack.set()
                    return
                self._set_state("paused")
                item.ack.set()
                self._set_state("running")
                continue
            if isinstance(item, BaseException):
                self._source.close()
                raise WatchError(f"Watch of {self.watch_dir} failed: {item}") from item
            self._handle(item)

    def _handle(self, notification: Notification) -> None:
        if not notification.is_modify:
            return
        if not self._debounce.matches(notification.path):
            return
        logger.debug("Event %s occurred for file %s", notification.kind, notification.path)
        if self._debounce.accept(notification.path):
            logger.info("Run the tests")
            self._executor.try_run(self.watch_dir)

    def _release_pending(self) -> None:
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return
            if isinstance(item, _Control):
                item.ack.set()
