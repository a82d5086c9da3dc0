import sqlite3

import pytest

from nedict import codec
from nedict.errors import (
    DecodeError,
    NotFoundError,
    OpenError,
    ReadOnlyError,
    StoreClosedError,
    TransactionError,
)
from nedict.store import Store

from conftest import fill


def test_open_creates_file_and_bucket(db_path):
    with Store.open(db_path, bucket="MyCustomBucket") as s:
        assert s.bucket == "MyCustomBucket"
        assert s.count() == 0
    con = sqlite3.connect(db_path)
    names = [r[0] for r in con.execute("SELECT name FROM sqlite_master WHERE type='table'")]
    con.close()
    assert "MyCustomBucket" in names


def test_open_is_idempotent_on_existing_bucket(db_path):
    with Store.open(db_path) as s:
        s.put("apple", {"frq": "1"})
    with Store.open(db_path) as s:
        assert s.get("apple") == ({"frq": "1"}, True)


def test_open_fails_for_unreachable_path(tmp_path):
    with pytest.raises(OpenError):
        Store.open(str(tmp_path / "missing-dir" / "x.sqlite"))


def test_put_get_is_case_insensitive(store):
    record = {"translation": "int. 喂", "frq": "500"}
    store.put("Hello", record)
    assert store.get("hello") == (record, True)
    assert store.get("HELLO") == (record, True)


def test_get_missing_key_is_not_an_error(store):
    assert store.get("nonexistent") == (None, False)


def test_put_overwrites(store):
    store.put("k", {"data": "value1"})
    store.put("k", {"data": "value2"})
    assert store.get("k") == ({"data": "value2"}, True)
    assert store.count() == 1


def test_put_empty_record(store):
    store.put("empty", None)
    assert store.get("empty") == ({}, True)


def test_get_surfaces_corrupt_value(store):
    store.run_batch(lambda b: b.put_raw("broken", b"\x00garbage"))
    with pytest.raises(DecodeError):
        store.get("broken")


def test_scan_all_is_ordered_and_restartable(store):
    fill(store, {"banana": 3, "Apple": 1, "cherry": 2, "apricot": 4})
    first = [k for k, _ in store.scan_all()]
    assert first == ["apple", "apricot", "banana", "cherry"]
    assert [k for k, _ in store.scan_all()] == first
    values = dict(store.scan_all())
    assert codec.decode(values["cherry"]) == {"frq": "2"}


def test_scan_all_orders_by_raw_bytes(store):
    fill(store, {"zebra": 1, "émigré": 2, "abc": 3})
    keys = [k for k, _ in store.scan_all()]
    assert keys == sorted(keys, key=lambda k: k.encode("utf-8"))


def test_run_batch_commits_all(store):
    def load(batch):
        for i in range(100):
            batch.put(f"w{i:03d}", {"frq": str(i)})
        return batch.writes
    assert store.run_batch(load) == 100
    assert store.count() == 100


def test_run_batch_rolls_back_on_error(store):
    store.put("kept", {"frq": "1"})

    def load(batch):
        batch.put("lost1", {"frq": "2"})
        batch.put("lost2", {"frq": "3"})
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        store.run_batch(load)
    assert store.get("lost1") == (None, False)
    assert store.get("lost2") == (None, False)
    assert store.get("kept") == ({"frq": "1"}, True)


def test_run_batch_wraps_engine_errors(store):
    def load(batch):
        batch.put("lost", {"frq": "2"})
        raise sqlite3.OperationalError("disk I/O error")

    with pytest.raises(TransactionError):
        store.run_batch(load)
    assert store.get("lost") == (None, False)


def test_batch_is_unusable_after_commit(store):
    holder = []
    store.run_batch(holder.append)
    with pytest.raises(StoreClosedError):
        holder[0].put("late", {})


def test_close_is_idempotent(db_path):
    s = Store.open(db_path)
    s.close()
    s.close()
    assert s.closed
    with pytest.raises(StoreClosedError):
        s.get("anything")


# ----- read-only mode -----
def test_read_only_sees_committed_data(db_path):
    with Store.open(db_path) as s:
        s.put("apple", {"frq": "7"})
    with Store.open(db_path, read_only=True) as ro:
        assert ro.get("Apple") == ({"frq": "7"}, True)
        assert [k for k, _ in ro.scan_all()] == ["apple"]


def test_read_only_rejects_writes(db_path):
    Store.open(db_path).close()
    with Store.open(db_path, read_only=True) as ro:
        with pytest.raises(ReadOnlyError):
            ro.put("x", {})
        with pytest.raises(ReadOnlyError):
            ro.run_batch(lambda b: None)


def test_read_only_missing_file_fails_lazily(tmp_path):
    path = str(tmp_path / "nope.sqlite")
    ro = Store.open(path, read_only=True)
    with pytest.raises(NotFoundError):
        ro.get("x")
    ro.close()
    assert not (tmp_path / "nope.sqlite").exists()


def test_read_only_missing_bucket(db_path):
    Store.open(db_path, bucket="other").close()
    with Store.open(db_path, bucket="ecdict", read_only=True) as ro:
        with pytest.raises(NotFoundError):
            ro.get("x")
        with pytest.raises(NotFoundError):
            list(ro.scan_all())


def test_bucket_name_is_quoted(db_path):
    with Store.open(db_path, bucket='odd "name"; drop') as s:
        s.put("a", {"frq": "1"})
        assert s.get("a") == ({"frq": "1"}, True)


def test_reader_sees_snapshot_while_large_batch_is_written(db_path):
    with Store.open(db_path) as s:
        s.put("apple", {"frq": "7"})

        def load(batch):
            # ~10 MB, well past the page cache, so the writer spills mid-transaction
            for i in range(5000):
                batch.put(f"word{i:05d}", {"definition": "x" * 2000})
            with Store.open(db_path, read_only=True, timeout=0.2) as ro:
                assert ro.get("apple") == ({"frq": "7"}, True)
                assert ro.get("word00000") == (None, False)
                assert ro.count() == 1

        s.run_batch(load)

    with Store.open(db_path, read_only=True) as ro:
        assert ro.count() == 5001
