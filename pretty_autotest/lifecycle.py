"""Process lifecycle: runnable units, signal routing, exit and fatal paths."""
from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from types import FrameType
from typing import Any, Protocol

from pretty_autotest.interrupts import HANDLED_SIGNALS, SignalHandler

logger = logging.getLogger(__name__)


class Runnable(Protocol):
    def run(self) -> None: ...

    def pause(self, timeout: float | None = None) -> bool: ...

    def terminate(self, timeout: float | None = None) -> bool: ...


@dataclass(slots=True)
class _Registration:
    name: str
    loop: Runnable
    thread: threading.Thread | None = None


class Application:
    def __init__(
        self,
        *,
        signals: Iterable[int] = HANDLED_SIGNALS,
        terminate_timeout: float = 5.0,
        poll_interval: float = 0.25,
    ) -> None:
        self._signals = tuple(signals)
        self._terminate_timeout = terminate_timeout
        self._poll_interval = poll_interval
        self._registrations: list[_Registration] = []
        self._handlers: list[SignalHandler] = []
        self._exit_event = threading.Event()
        self._lock = threading.Lock()
        self._exit_code = 0

    @property
    def exit_code(self) -> int:
        with self._lock:
            return self._exit_code

    @property
    def exiting(self) -> bool:
        return self._exit_event.is_set()

    def register(self, name: str, loop: Runnable) -> None:
        self._registrations.append(_Registration(name=name, loop=loop))

    def install_signal_handler(self, handler: SignalHandler) -> None:
        self._handlers.append(handler)

    def dispatch(self, signum: int) -> None:
        for handler in list(self._handlers):
            handler.handle_signal(signum)

    def exit(self, code: int = 0) -> None:
        with self._lock:
            if not self._exit_event.is_set():
                self._exit_code = code
        self._exit_event.set()

    def fatal(self, message: str) -> None:
        logger.error(message)
        self.exit(1)

    def pause_all(self, timeout: float | None = None) -> bool:
        return all(reg.loop.pause(timeout) for reg in self._registrations)

    def run(self) -> int:
        previous = self._install_os_handlers()
        try:
            for registration in self._registrations:
                thread = threading.Thread(
                    target=self._run_loop,
                    args=(registration,),
                    name=f"pretty-autotest-{registration.name}",
                    daemon=True,
                )
                registration.thread = thread
                logger.debug("Starting %s", registration.name)
                thread.start()

            while not self._exit_event.wait(self._poll_interval):
                pass
            self._terminate_all()
        finally:
            self._restore_os_handlers(previous)
        return self.exit_code

    def _run_loop(self, registration: _Registration) -> None:
        try:
            registration.loop.run()
        except Exception as exc:
            self.fatal(f"{registration.name}: {exc}")

    def _terminate_all(self) -> None:
        for registration in self._registrations:
            thread = registration.thread
            if thread is None or not thread.is_alive():
                continue
            if not registration.loop.terminate(self._terminate_timeout):
                logger.warning("%s did not stop within %ss", registration.name, self._terminate_timeout)
                continue
            thread.join(self._terminate_timeout)

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        self.dispatch(signum)

    def _install_os_handlers(self) -> dict[int, Any]:
        previous: dict[int, Any] = {}
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread; OS signal handlers not installed")
            return previous
        for signum in self._signals:
            previous[signum] = signal.signal(signum, self._on_signal)
        return previous

    def _restore_os_handlers(self, previous: dict[int, Any]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
