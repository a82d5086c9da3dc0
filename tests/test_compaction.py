import os

import pytest

from nedict import codec
from nedict.compaction import compact
from nedict.errors import CompactionError, CompactionRecoveryError, StoreClosedError
from nedict.store import Store

from conftest import fill


def snapshot(path):
    with Store.open(path, read_only=True) as ro:
        return {k: codec.decode(v) for k, v in ro.scan_all()}


def bloat(store, n=400):
    """Write large values, then overwrite them with small ones to leave free pages."""
    fill(store, {f"word{i:04d}": {"definition": "x" * 4000, "frq": str(i)} for i in range(n)})
    fill(store, {f"word{i:04d}": {"frq": str(i)} for i in range(n)})


def test_compaction_preserves_content_and_shrinks(db_path):
    store = Store.open(db_path)
    bloat(store)
    store.put("Hello", {"translation": "int. 喂"})
    store.close()

    before_content = snapshot(db_path)
    before_size = os.path.getsize(db_path)

    store = Store.open(db_path)
    store.compact()

    assert snapshot(db_path) == before_content
    assert os.path.getsize(db_path) < before_size
    assert not os.path.exists(db_path + ".tmp")


def test_handle_is_closed_after_compaction(db_path):
    store = Store.open(db_path)
    fill(store, {"apple": 1})
    compact(store)
    assert store.closed
    with pytest.raises(StoreClosedError):
        store.get("apple")
    with Store.open(db_path) as reopened:
        assert reopened.get("apple") == ({"frq": "1"}, True)


def test_custom_temp_path_and_stale_temp(db_path, tmp_path):
    temp = str(tmp_path / "work.tmp")
    with open(temp, "wb") as f:
        f.write(b"leftover from a crashed run")
    store = Store.open(db_path)
    fill(store, {"apple": 1, "apply": 2})
    store.compact(temp)
    assert not os.path.exists(temp)
    assert set(snapshot(db_path)) == {"apple", "apply"}


def test_refuses_read_only_and_closed(db_path):
    Store.open(db_path).close()
    with Store.open(db_path, read_only=True) as ro:
        with pytest.raises(CompactionError):
            ro.compact()
    s = Store.open(db_path)
    s.close()
    with pytest.raises(CompactionError):
        s.compact()


def test_temp_path_must_differ(db_path):
    s = Store.open(db_path)
    with pytest.raises(CompactionError):
        s.compact(db_path)
    s.close()


def test_copy_failure_leaves_original(db_path, tmp_path):
    store = Store.open(db_path)
    fill(store, {"apple": 1})
    temp = str(tmp_path / "no-such-dir" / "x.tmp")
    with pytest.raises(CompactionError) as exc:
        store.compact(temp)
    assert not isinstance(exc.value, CompactionRecoveryError)
    assert store.closed
    assert not os.path.exists(temp)
    assert snapshot(db_path) == {"apple": {"frq": "1"}}


def test_rename_failure_needs_manual_recovery(db_path, monkeypatch):
    store = Store.open(db_path)
    fill(store, {"apple": 1})

    def broken_replace(src, dst):
        raise OSError("cross-device link")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(CompactionRecoveryError) as exc:
        store.compact()
    monkeypatch.undo()

    err = exc.value
    assert err.db_path == db_path
    assert err.temp_path == db_path + ".tmp"
    assert not os.path.exists(db_path)
    assert os.path.exists(err.temp_path)

    # the manual recovery step
    os.replace(err.temp_path, db_path)
    assert snapshot(db_path) == {"apple": {"frq": "1"}}


def test_remove_failure_is_past_point_of_no_return(db_path, monkeypatch):
    store = Store.open(db_path)
    fill(store, {"apple": 1})
    real_remove = os.remove

    def broken_remove(path):
        if path == db_path:
            raise PermissionError("locked")
        return real_remove(path)

    monkeypatch.setattr(os, "remove", broken_remove)
    with pytest.raises(CompactionRecoveryError):
        store.compact()


def test_compaction_leaves_no_stale_wal(db_path):
    store = Store.open(db_path)
    fill(store, {"apple": 1, "apply": 2})
    # read-only handles cannot checkpoint, so their side files can linger
    with Store.open(db_path, read_only=True) as ro:
        assert ro.count() == 2
    store.compact()
    assert not os.path.exists(db_path + "-wal")
    assert not os.path.exists(db_path + "-shm")
    assert set(snapshot(db_path)) == {"apple", "apply"}
