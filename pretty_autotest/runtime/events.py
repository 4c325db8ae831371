from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

NotificationKind = Literal["modify", "other"]


@dataclass(slots=True)
class EventRecord:
    """Last accepted event for a tracked file."""

    path: str
    occurred_at: float


@dataclass(frozen=True, slots=True)
class Notification:
    path: str
    kind: NotificationKind = "modify"

    @property
    def is_modify(self) -> bool:
        return self.kind == "modify"
