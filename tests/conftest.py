from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from pretty_autotest.runtime.events import Notification


class FakeRunner:
    """Records invocations; optionally blocks until released."""

    def __init__(self, output: str = "ok\n", returncode: int = 0, block: bool = False) -> None:
        self.output = output
        self.returncode = returncode
        self.calls: list[tuple[list[str], Path]] = []
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()
        self._lock = threading.Lock()

    def __call__(self, command: list[str], cwd: Path) -> tuple[str, int]:
        with self._lock:
            self.calls.append((command, cwd))
        self.started.set()
        self.release.wait(5.0)
        return self.output, self.returncode


class FakeSource:
    def __init__(self, fail_on_watch: Exception | None = None) -> None:
        self.fail_on_watch = fail_on_watch
        self.watched: Path | None = None
        self.closed = False
        self.ready = threading.Event()
        self._on_event: Callable[[Notification], None] | None = None
        self._on_error: Callable[[BaseException], None] | None = None

    def watch(
        self,
        path: Path,
        on_event: Callable[[Notification], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        if self.fail_on_watch is not None:
            raise self.fail_on_watch
        self.watched = path
        self._on_event = on_event
        self._on_error = on_error
        self.ready.set()

    def emit(self, path: str, kind: str = "modify") -> None:
        assert self._on_event is not None
        self._on_event(Notification(path=path, kind=kind))  # type: ignore[arg-type]

    def error(self, exc: BaseException) -> None:
        assert self._on_error is not None
        self._on_error(exc)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


@pytest.fixture
def make_source() -> Callable[..., FakeSource]:
    return FakeSource


@pytest.fixture
def fake_runner(make_runner: Callable[..., FakeRunner]) -> FakeRunner:
    return make_runner()


@pytest.fixture
def fake_source(make_source: Callable[..., FakeSource]) -> FakeSource:
    return make_source()


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    logger = logging.getLogger("pretty_autotest")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
