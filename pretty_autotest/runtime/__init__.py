"""Event coalescing and single-flight test execution."""

from pretty_autotest.runtime.debounce import DISCARD_WINDOW, DebounceFilter
from pretty_autotest.runtime.events import EventRecord, Notification
from pretty_autotest.runtime.executor import RunGuard, TestExecutor
from pretty_autotest.runtime.source import NotificationSource, WatchdogSource
from pretty_autotest.runtime.store import EventStore

__all__ = [
    "DISCARD_WINDOW",
    "DebounceFilter",
    "EventRecord",
    "EventStore",
    "Notification",
    "NotificationSource",
    "RunGuard",
    "TestExecutor",
    "WatchdogSource",
]
