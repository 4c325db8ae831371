"""Filesystem notification sources feeding the watcher loop."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
    FileModifiedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from pretty_autotest.runtime.events import Notification

logger = logging.getLogger(__name__)

NotifyFn = Callable[[Notification], None]
ErrorFn = Callable[[BaseException], None]


class NotificationSource(Protocol):
    def watch(self, path: Path, on_event: NotifyFn, on_error: ErrorFn) -> None: ...

    def close(self) -> None: ...


def _as_str(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode(errors="replace")
    return path


def to_notification(event: FileSystemEvent) -> Notification | None:
    if event.is_directory:
        return None
    path = _as_str(event.src_path)
    kind = "modify" if isinstance(event, FileModifiedEvent) else "other"
    return Notification(path=path, kind=kind)


class _ErrorLatch:
    def __init__(self, on_error: ErrorFn) -> None:
        self._on_error = on_error
        self._lock = threading.Lock()
        self._reported = False

    def report(self, exc: BaseException) -> None:
        with self._lock:
            if self._reported:
                return
            self._reported = True
        self._on_error(exc)


class _ForwardingHandler(FileSystemEventHandler):
    def __init__(self, root: Path, on_event: NotifyFn, latch: _ErrorLatch) -> None:
        super().__init__()
        self._root = str(root)
        self._on_event = on_event
        self._latch = latch

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) and (
            _as_str(event.src_path) == self._root
        ):
            self._latch.report(FileNotFoundError(f"Watched directory removed: {self._root}"))
            return
        notification = to_notification(event)
        if notification is not None:
            self._on_event(notification)


class WatchdogSource:
    """``NotificationSource`` backed by a watchdog ``Observer``.

    A monitor thread reports a vanished root or a dead observer.
    """

    def __init__(
        self,
        *,
        recursive: bool = True,
        join_timeout: float = 2.0,
        health_interval: float = 1.0,
    ) -> None:
        self._recursive = recursive
        self._join_timeout = join_timeout
        self._health_interval = health_interval
        self._observer: Observer | None = None
        self._monitor: threading.Thread | None = None
        self._stopped = threading.Event()

    def watch(self, path: Path, on_event: NotifyFn, on_error: ErrorFn) -> None:
        resolved = Path(path).resolve()
        if not resolved.is_dir():
            raise FileNotFoundError(f"Not a directory: {resolved}")
        latch = _ErrorLatch(on_error)
        observer = Observer()
        observer.schedule(
            _ForwardingHandler(resolved, on_event, latch),
            str(resolved),
            recursive=self._recursive,
        )
        observer.start()
        self._observer = observer
        self._stopped.clear()
        self._monitor = threading.Thread(
            target=self._check_health,
            args=(resolved, observer, latch),
            name="pretty-autotest-watch-health",
            daemon=True,
        )
        self._monitor.start()
        logger.debug("Observer started for %s (recursive=%s)", resolved, self._recursive)

    def _check_health(self, root: Path, observer: Observer, latch: _ErrorLatch) -> None:
        while not self._stopped.wait(self._health_interval):
            if not root.is_dir():
                latch.report(FileNotFoundError(f"Watched directory removed: {root}"))
                return
            if not observer.is_alive():
                latch.report(RuntimeError(f"Observer for {root} stopped"))
                return

    def close(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        self._stopped.set()
        observer.stop()
        observer.join(timeout=self._join_timeout)
        monitor, self._monitor = self._monitor, None
        if monitor is not None and monitor is not threading.current_thread():
            monitor.join(timeout=self._join_timeout)
