"""Platform identifiers, push outcomes and queue engines."""

from __future__ import annotations

from enum import Enum, IntEnum


class Platform(IntEnum):
    """Target platform of a notification."""

    IOS = 1
    ANDROID = 2
    HUAWEI = 3


class PushStatus(str, Enum):
    """Outcome of a single push, used as the log block name."""

    SUCCEEDED = "succeeded-push"
    FAILED = "failed-push"


class QueueEngine(str, Enum):
    """Backend that carries queued notifications."""

    LOCAL = "local"
    NSQ = "nsq"
    NATS = "nats"


def is_local_queue(engine: QueueEngine | str) -> bool:
    """Return True when the engine is the in-process queue."""
    return engine == QueueEngine.LOCAL