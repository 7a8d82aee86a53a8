"""Counters of push results and the in-memory store for them."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from enum import Enum


class Counter(str, Enum):
    """Statistic counters, valued by their storage key."""

    TOTAL_COUNT = "pushrelay-total-count"
    IOS_SUCCESS = "pushrelay-ios-success-count"
    IOS_ERROR = "pushrelay-ios-error-count"
    ANDROID_SUCCESS = "pushrelay-android-success-count"
    ANDROID_ERROR = "pushrelay-android-error-count"
    HUAWEI_SUCCESS = "pushrelay-huawei-success-count"
    HUAWEI_ERROR = "pushrelay-huawei-error-count"


class Storage(ABC):
    """A store of statistic counters."""

    @abstractmethod
    def init(self) -> None:
        """Open the store; raise on failure."""

    @abstractmethod
    def reset(self) -> None:
        """Set every counter back to zero."""

    @abstractmethod
    def close(self) -> None:
        """Release the store."""

    @abstractmethod
    def increment(self, counter: Counter, count: int) -> None:
        """Add count to a counter."""

    @abstractmethod
    def value(self, counter: Counter) -> int:
        """Current value of a counter."""

    def snapshot(self) -> dict[Counter, int]:
        """Values of all counters."""
        return {counter: self.value(counter) for counter in Counter}

    def __enter__(self) -> Storage:
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MemoryStorage(Storage):
    """Counters held in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[Counter, int] = dict.fromkeys(Counter, 0)

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    def reset(self) -> None:
        with self._lock:
            self._counts = dict.fromkeys(Counter, 0)

    def increment(self, counter: Counter, count: int) -> None:
        with self._lock:
            self._counts[Counter(counter)] += count

    def value(self, counter: Counter) -> int:
        with self._lock:
            return self._counts[Counter(counter)]