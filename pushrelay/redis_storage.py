"""Counters kept in a Redis cluster."""

from __future__ import annotations

from typing import Any

import redis
from redis.cluster import RedisCluster

from pushrelay.storage import Counter, Storage

_DEFAULT_PORT = 6379


class RedisStorage(Storage):
    """Counters stored as integer keys in Redis."""

    def __init__(
        self,
        addr: str = "localhost:6379",
        username: str = "",
        password: str = "",
        client: Any = None,
    ) -> None:
        self.addr = addr
        self.username = username
        self.password = password
        self._client = client

    def _connect(self) -> Any:
        host, sep, port = self.addr.rpartition(":")
        if not sep:
            host, port = self.addr, str(_DEFAULT_PORT)
        return RedisCluster(
            host=host,
            port=int(port),
            username=self.username or None,
            password=self.password or None,
            ssl=True,
        )

    def init(self) -> None:
        """Connect and ping the server; raise if it cannot be reached."""
        if self._client is None:
            self._client = self._connect()
        self._client.ping()

    def close(self) -> None:
        if self._client is None:
            return
        self._client.close()

    def reset(self) -> None:
        for counter in Counter:
            self._client.set(counter.value, 0)

    def increment(self, counter: Counter, count: int) -> None:
        self._client.incrby(Counter(counter).value, count)

    def value(self, counter: Counter) -> int:
        try:
            raw = self._client.get(Counter(counter).value)
        except redis.RedisError:
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            return 0