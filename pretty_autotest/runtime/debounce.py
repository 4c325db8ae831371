from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from typing import Literal

from pretty_autotest.runtime.store import EventStore

# Repeated events for the same file inside this window count as one change.
DISCARD_WINDOW = 1.0

DEFAULT_PATTERN = r".*\.go$"

Decision = Literal["ignored", "accepted", "discarded"]

logger = logging.getLogger(__name__)


class DebounceFilter:
    """Collapse bursts of modify notifications into one accepted event per file."""

    def __init__(
        self,
        store: EventStore,
        *,
        pattern: str = DEFAULT_PATTERN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._pattern = re.compile(pattern)
        self._clock = clock

    def matches(self, path: str) -> bool:
        return self._pattern.search(path) is not None

    def decide(self, path: str, now: float | None = None) -> Decision:
        if not self.matches(path):
            return "ignored"

        timestamp = self._clock() if now is None else now
        existing = self._store.lookup(path)
        if existing is None:
            self._store.record(path, timestamp)
            return "accepted"
        if timestamp - existing.occurred_at > DISCARD_WINDOW:
            self._store.record(path, timestamp)
            return "accepted"

        logger.debug("Event was discarded for file %s", path)
        return "discarded"

    def accept(self, path: str, now: float | None = None) -> bool:
        return self.decide(path, now) == "accepted"
