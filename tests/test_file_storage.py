import sqlite3

import pytest

from pushrelay.file_storage import FileStorage
from pushrelay.storage import Counter


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "stat.db")


@pytest.mark.parametrize("name", ["bolt.db", "bunt.db", "level.db", "badger.db"])
def test_engine_counts(tmp_path, name):
    store = FileStorage(str(tmp_path / name), "pushrelay")
    store.init()
    store.reset()

    store.increment(Counter.TOTAL_COUNT, 10)
    assert store.value(Counter.TOTAL_COUNT) == 10
    store.increment(Counter.TOTAL_COUNT, 10)
    assert store.value(Counter.TOTAL_COUNT) == 20

    store.increment(Counter.IOS_SUCCESS, 20)
    assert store.value(Counter.IOS_SUCCESS) == 20

    store.increment(Counter.IOS_ERROR, 30)
    assert store.value(Counter.IOS_ERROR) == 30

    store.increment(Counter.ANDROID_SUCCESS, 40)
    assert store.value(Counter.ANDROID_SUCCESS) == 40

    store.increment(Counter.ANDROID_ERROR, 50)
    assert store.value(Counter.ANDROID_ERROR) == 50

    store.reset()
    assert store.value(Counter.ANDROID_ERROR) == 0

    store.close()
    assert store._db is None


def test_missing_counter_reads_zero(db_path):
    with FileStorage(db_path) as store:
        assert store.value(Counter.HUAWEI_SUCCESS) == 0


def test_values_survive_reopen(db_path):
    with FileStorage(db_path) as store:
        store.increment(Counter.HUAWEI_ERROR, 7)
    with FileStorage(db_path) as store:
        assert store.value(Counter.HUAWEI_ERROR) == 7


def test_buckets_are_separate(db_path):
    with FileStorage(db_path, "first") as first, FileStorage(db_path, "second") as second:
        first.increment(Counter.TOTAL_COUNT, 3)
        second.increment(Counter.TOTAL_COUNT, 5)
        assert first.value(Counter.TOTAL_COUNT) == 3
        assert second.value(Counter.TOTAL_COUNT) == 5


def test_snapshot_lists_every_counter(db_path):
    with FileStorage(db_path) as store:
        store.reset()
        store.increment(Counter.IOS_SUCCESS, 2)
        snap = store.snapshot()
    assert set(snap) == set(Counter)
    assert snap[Counter.IOS_SUCCESS] == 2
    assert snap[Counter.TOTAL_COUNT] == 0


def test_accepts_key_strings(db_path):
    with FileStorage(db_path) as store:
        store.increment("pushrelay-total-count", 4)
        assert store.value(Counter.TOTAL_COUNT) == 4


def test_use_before_init_raises(db_path):
    store = FileStorage(db_path)
    with pytest.raises(RuntimeError):
        store.value(Counter.TOTAL_COUNT)


def test_close_without_init_is_harmless(db_path):
    store = FileStorage(db_path)
    store.close()
    assert store._db is None


def test_init_on_directory_fails(tmp_path):
    store = FileStorage(str(tmp_path))
    with pytest.raises(sqlite3.Error):
        store.init()


def test_empty_path_uses_temp_dir():
    store = FileStorage("")
    assert store.path.endswith("pushrelay-stat.db")