"""Choice of statistic store and the application status report."""

from __future__ import annotations

import os
import threading
import time
from collections import Counter as Tally
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from pushrelay.file_storage import DEFAULT_BUCKET, FileStorage
from pushrelay.logx import LOG_ACCESS, LOG_ERROR
from pushrelay.redis_storage import RedisStorage
from pushrelay.storage import Counter, MemoryStorage, Storage


@dataclass
class StatOptions:
    """Settings of the statistic store."""

    engine: str = "memory"
    redis_addr: str = "localhost:6379"
    redis_username: str = ""
    redis_password: str = ""
    boltdb_path: str = "bolt.db"
    boltdb_bucket: str = DEFAULT_BUCKET
    buntdb_path: str = "bunt.db"
    leveldb_path: str = "level.db"
    badger_path: str = "badger.db"


@dataclass
class PlatformStatus:
    """Success and error counts of one platform."""

    push_success: int = 0
    push_error: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"push_success": self.push_success, "push_error": self.push_error}


@dataclass
class App:
    """Application status report."""

    version: str = ""
    queue_max: int = 0
    queue_usage: int = 0
    total_count: int = 0
    ios: PlatformStatus = field(default_factory=PlatformStatus)
    android: PlatformStatus = field(default_factory=PlatformStatus)
    huawei: PlatformStatus = field(default_factory=PlatformStatus)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "queue_max": self.queue_max,
            "queue_usage": self.queue_usage,
            "total_count": self.total_count,
            "ios": self.ios.to_dict(),
            "android": self.android.to_dict(),
            "huawei": self.huawei.to_dict(),
        }


class RequestStats:
    """Response times and status code counts of served requests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._recent: Tally[str] = Tally()
        self._total: Tally[str] = Tally()
        self._total_count = 0
        self._total_time = 0.0

    def begin(self) -> float:
        """Mark the start of a request; pass the result to end()."""
        return time.perf_counter()

    def end(self, started: float, status_code: int) -> None:
        """Record a finished request."""
        elapsed = max(time.perf_counter() - started, 0.0)
        code = str(status_code)
        with self._lock:
            self._recent[code] += 1
            self._total[code] += 1
            self._total_count += 1
            self._total_time += elapsed

    def data(self) -> dict[str, Any]:
        """Current figures; the recent counts start again afterwards."""
        now = time.time()
        with self._lock:
            recent = dict(self._recent)
            self._recent.clear()
            total = dict(self._total)
            total_count = self._total_count
            total_time = self._total_time
        average = total_time / total_count if total_count else 0.0
        uptime = max(now - self._started_at, 0.0)
        return {
            "pid": os.getpid(),
            "uptime": str(timedelta(seconds=uptime)),
            "uptime_sec": uptime,
            "time": datetime.fromtimestamp(now).isoformat(),
            "unixtime": int(now),
            "status_code_count": recent,
            "total_status_code_count": total,
            "count": sum(recent.values()),
            "total_count": total_count,
            "total_response_time": str(timedelta(seconds=total_time)),
            "total_response_time_sec": total_time,
            "average_response_time": str(timedelta(seconds=average)),
            "average_response_time_sec": average,
        }


def create_storage(options: StatOptions) -> Storage:
    """Build the store named by the engine, unopened; raise ValueError if unknown."""
    engine = options.engine
    if engine == "memory":
        return MemoryStorage()
    if engine == "redis":
        return RedisStorage(options.redis_addr, options.redis_username, options.redis_password)
    if engine == "boltdb":
        return FileStorage(options.boltdb_path, options.boltdb_bucket)
    if engine == "buntdb":
        return FileStorage(options.buntdb_path, DEFAULT_BUCKET)
    if engine == "leveldb":
        return FileStorage(options.leveldb_path, DEFAULT_BUCKET)
    if engine == "badger":
        return FileStorage(options.badger_path, DEFAULT_BUCKET)
    LOG_ERROR.error("storage error: can't find storage driver")
    raise ValueError("can't find storage driver")


def init_app_status(options: StatOptions) -> Storage:
    """Create and open the configured store."""
    LOG_ACCESS.info("Init App Status Engine as %s", options.engine)
    storage = create_storage(options)
    try:
        storage.init()
    except Exception as exc:
        LOG_ERROR.error("storage error: %s", exc)
        raise
    return storage


def app_status(storage: Storage, version: str, queue_max: int, queue_usage: int) -> App:
    """Gather the status report from the store and the queue figures."""
    return App(
        version=version,
        queue_max=queue_max,
        queue_usage=queue_usage,
        total_count=storage.value(Counter.TOTAL_COUNT),
        ios=PlatformStatus(storage.value(Counter.IOS_SUCCESS), storage.value(Counter.IOS_ERROR)),
        android=PlatformStatus(
            storage.value(Counter.ANDROID_SUCCESS), storage.value(Counter.ANDROID_ERROR)
        ),
        huawei=PlatformStatus(
            storage.value(Counter.HUAWEI_SUCCESS), storage.value(Counter.HUAWEI_ERROR)
        ),
    )