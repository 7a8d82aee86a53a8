import threading

from pushrelay.storage import Counter, MemoryStorage


def test_memory_engine():
    memory = MemoryStorage()
    memory.init()

    memory.increment(Counter.TOTAL_COUNT, 1)
    assert memory.value(Counter.TOTAL_COUNT) == 1

    memory.increment(Counter.TOTAL_COUNT, 100)
    assert memory.value(Counter.TOTAL_COUNT) == 101

    memory.increment(Counter.IOS_SUCCESS, 2)
    assert memory.value(Counter.IOS_SUCCESS) == 2

    memory.increment(Counter.IOS_ERROR, 3)
    assert memory.value(Counter.IOS_ERROR) == 3

    memory.increment(Counter.ANDROID_SUCCESS, 4)
    assert memory.value(Counter.ANDROID_SUCCESS) == 4

    memory.increment(Counter.ANDROID_ERROR, 5)
    assert memory.value(Counter.ANDROID_ERROR) == 5

    memory.reset()
    assert memory.value(Counter.TOTAL_COUNT) == 0

    memory.close()


def test_huawei_counters_and_snapshot():
    memory = MemoryStorage()
    memory.increment(Counter.HUAWEI_SUCCESS, 6)
    memory.increment(Counter.HUAWEI_ERROR, 7)
    snap = memory.snapshot()
    assert set(snap) == set(Counter)
    assert snap[Counter.HUAWEI_SUCCESS] == 6
    assert snap[Counter.HUAWEI_ERROR] == 7
    assert snap[Counter.TOTAL_COUNT] == 0


def test_counter_accepts_key_string():
    memory = MemoryStorage()
    memory.increment(Counter.IOS_ERROR.value, 2)
    assert memory.value(Counter.IOS_ERROR) == 2


def test_context_manager_and_concurrent_increments():
    with MemoryStorage() as memory:
        threads = [
            threading.Thread(target=memory.increment, args=(Counter.TOTAL_COUNT, 1))
            for _ in range(10)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert memory.value(Counter.TOTAL_COUNT) == 10