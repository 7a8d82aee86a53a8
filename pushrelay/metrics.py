"""Statistic counters exposed as Prometheus metrics."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pushrelay.storage import Counter, Storage

NAMESPACE = "pushrelay_"

_COUNTER_METRICS: tuple[tuple[str, str, Counter], ...] = (
    ("total_push_count", "Number of push count", Counter.TOTAL_COUNT),
    ("ios_success", "Number of iOS success count", Counter.IOS_SUCCESS),
    ("ios_error", "Number of iOS fail count", Counter.IOS_ERROR),
    ("android_success", "Number of android success count", Counter.ANDROID_SUCCESS),
    ("android_fail", "Number of android fail count", Counter.ANDROID_ERROR),
    ("huawei_success", "Number of huawei success count", Counter.HUAWEI_SUCCESS),
    ("huawei_fail", "Number of huawei fail count", Counter.HUAWEI_ERROR),
)


@dataclass(frozen=True)
class MetricDesc:
    """Name, help text and type of one metric."""

    name: str
    help: str
    kind: str = "counter"


def _no_queue_usage() -> int:
    return 0


def _format_value(value: float) -> str:
    return str(int(value)) if value.is_integer() else repr(value)


class Metrics:
    """The push counters and the queue usage as metrics."""

    def __init__(self, get_queue_usage: Callable[[], int] | None = None) -> None:
        self.get_queue_usage = get_queue_usage or _no_queue_usage
        self._counters = [
            (MetricDesc(NAMESPACE + name, help_text), counter)
            for name, help_text, counter in _COUNTER_METRICS
        ]
        self.queue_usage = MetricDesc(
            NAMESPACE + "queue_usage", "Length of internal queue", "gauge"
        )

    def describe(self) -> list[MetricDesc]:
        """Every metric that collect() reports, in order."""
        return [desc for desc, _ in self._counters] + [self.queue_usage]

    def collect(self, storage: Storage) -> list[tuple[MetricDesc, float]]:
        """Current value of every metric."""
        samples = [(desc, float(storage.value(counter))) for desc, counter in self._counters]
        samples.append((self.queue_usage, float(self.get_queue_usage())))
        return samples

    def render(self, storage: Storage) -> str:
        """The metrics in the Prometheus text exposition format."""
        lines: list[str] = []
        for desc, value in self.collect(storage):
            lines.append(f"# HELP {desc.name} {desc.help}")
            lines.append(f"# TYPE {desc.name} {desc.kind}")
            lines.append(f"{desc.name} {_format_value(value)}")
        return "\n".join(lines) + "\n"