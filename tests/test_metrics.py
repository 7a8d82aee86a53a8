from pushrelay.metrics import NAMESPACE, MetricDesc, Metrics
from pushrelay.storage import Counter, MemoryStorage


def test_default_queue_usage_is_zero():
    assert Metrics().get_queue_usage() == 0


def test_custom_queue_usage():
    assert Metrics(lambda: 1).get_queue_usage() == 1


def test_describe_lists_all_metrics_in_order():
    names = [desc.name for desc in Metrics().describe()]
    assert names == [
        NAMESPACE + "total_push_count",
        NAMESPACE + "ios_success",
        NAMESPACE + "ios_error",
        NAMESPACE + "android_success",
        NAMESPACE + "android_fail",
        NAMESPACE + "huawei_success",
        NAMESPACE + "huawei_fail",
        NAMESPACE + "queue_usage",
    ]


def test_queue_usage_is_gauge():
    metrics = Metrics()
    assert metrics.describe()[-1] == MetricDesc(
        NAMESPACE + "queue_usage", "Length of internal queue", "gauge"
    )


def test_collect_reads_storage():
    storage = MemoryStorage()
    storage.increment(Counter.TOTAL_COUNT, 100)
    storage.increment(Counter.IOS_SUCCESS, 200)
    storage.increment(Counter.ANDROID_ERROR, 500)
    values = {desc.name: value for desc, value in Metrics(lambda: 7).collect(storage)}
    assert values[NAMESPACE + "total_push_count"] == 100.0
    assert values[NAMESPACE + "ios_success"] == 200.0
    assert values[NAMESPACE + "android_fail"] == 500.0
    assert values[NAMESPACE + "huawei_success"] == 0.0
    assert values[NAMESPACE + "queue_usage"] == 7.0


def test_render_text_format():
    storage = MemoryStorage()
    storage.increment(Counter.IOS_SUCCESS, 3)
    text = Metrics(lambda: 2).render(storage)
    assert f"# HELP {NAMESPACE}ios_success Number of iOS success count\n" in text
    assert f"# TYPE {NAMESPACE}ios_success counter\n" in text
    assert f"{NAMESPACE}ios_success 3\n" in text
    assert f"# TYPE {NAMESPACE}queue_usage gauge\n" in text
    assert text.endswith(f"{NAMESPACE}queue_usage 2\n")