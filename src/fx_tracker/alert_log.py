"""Session-scoped, append-only alert log (newest first)."""

from __future__ import annotations

from collections import deque
from typing import Optional

from fx_tracker.schemas import AlertKind, AlertLogEntry


class AlertLog:
    def __init__(self) -> None:
        self._entries: deque[AlertLogEntry] = deque()

    def prepend(self, entry: AlertLogEntry) -> None:
        self._entries.appendleft(entry)

    def count(self, kind: Optional[AlertKind] = None) -> int:
        if kind is None:
            return len(self._entries)
        return sum(1 for e in self._entries if e.kind == kind)

    def all(self) -> tuple[AlertLogEntry, ...]:
        return tuple(self._entries)

    def latest(self) -> Optional[AlertLogEntry]:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)
