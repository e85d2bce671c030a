"""Fixed-capacity rolling window of recent rate samples."""

from __future__ import annotations

import bisect
from collections import deque
from typing import Iterable, Optional

from fx_tracker.config import DEFAULT_CONFIG
from fx_tracker.schemas import RateSample


class HistoryWindow:
    """Ordered (unix ascending) buffer of at most ``capacity`` samples.

    The oldest sample is evicted once the window overflows. A sample older
    than the current tail is slotted into place instead of appended.
    """

    def __init__(self, capacity: int = DEFAULT_CONFIG.history.capacity) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._data: deque[RateSample] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: RateSample) -> None:
        if not self._data or self._data[-1].unix <= sample.unix:
            self._data.append(sample)
        else:
            keys = [s.unix for s in self._data]
            self._data.insert(bisect.bisect_right(keys, sample.unix), sample)
        while len(self._data) > self._capacity:
            self._data.popleft()

    def seed(self, samples: Iterable[RateSample]) -> None:
        for sample in samples:
            self.append(sample)

    def snapshot(self) -> tuple[RateSample, ...]:
        return tuple(self._data)

    def recent(self, n: int) -> list[RateSample]:
        if n <= 0:
            return []
        return list(self._data)[-n:]

    def latest(self) -> Optional[RateSample]:
        return self._data[-1] if self._data else None

    def __len__(self) -> int:
        return len(self._data)
