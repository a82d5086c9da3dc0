"""
Store adapter over a single-file SQLite database.

The database holds one bucket: a table ``"<bucket>"(k TEXT PRIMARY KEY,
v BLOB)`` mapping normalized headwords to encoded records. Keys compare with
SQLite's BINARY collation, so a forward scan is in raw UTF-8 byte order.

Modes:
    read-write  loader and compactor; the bucket is created if missing
    read-only   query path; opened lazily, so a missing file or bucket is
                reported as NotFoundError by the first operation

A read-write open switches the file to WAL journaling, so readers keep
seeing the last committed snapshot while a batch is being written instead of
waiting on the writer's lock. SQLite keeps "<db>-wal" and "<db>-shm" side
files next to the database while handles are open.

Usage:
    with Store.open("ecdict.sqlite") as store:
        store.put("Hello", {"translation": "int. 喂"})
        record, found = store.get("hello")
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Callable, Iterator, Mapping, Optional, Tuple, TypeVar

from . import codec, compaction
from .codec import Record
from .config import DEFAULT_BUCKET, DEFAULT_TIMEOUT, StoreConfig
from .errors import (
    NotFoundError,
    OpenError,
    ReadOnlyError,
    StoreClosedError,
    StoreError,
    TransactionError,
)
from .normalizer import normalize_key

log = logging.getLogger(__name__)

T = TypeVar("T")


# ----- sqlite helpers -----
def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _readonly_uri(path: str) -> str:
    return Path(path).resolve().as_uri() + "?mode=ro"


def _apply_read_optimized_pragmas(con: sqlite3.Connection) -> None:
    con.execute("PRAGMA temp_store=MEMORY")
    con.execute("PRAGMA mmap_size=268435456")   # 256 MB
    con.execute("PRAGMA cache_size=-65536")     # ~64 MB cache


def _is_missing_table(err: sqlite3.Error) -> bool:
    return isinstance(err, sqlite3.OperationalError) and "no such table" in str(err)


class Batch:
    """Write handle passed to the callback of Store.run_batch()."""

    def __init__(self, con: sqlite3.Connection, table: str):
        self._con = con
        self._sql_put = f"INSERT OR REPLACE INTO {table}(k, v) VALUES (?, ?)"
        self._active = True
        self.writes = 0

    def put(self, key: str, record: Optional[Mapping[str, str]]) -> None:
        """Encode and write one record; overwrites an existing entry."""
        self.put_raw(key, codec.encode(record))

    def put_raw(self, key: str, value: bytes) -> None:
        if not self._active:
            raise StoreClosedError("batch used outside of its transaction")
        # sqlite3.Error propagates so run_batch() can roll back
        self._con.execute(self._sql_put, (normalize_key(key), value))
        self.writes += 1


class Store:
    """Handle on one bucket of a database file."""

    def __init__(self, config: StoreConfig):
        self._config = config
        self._table = _quote_ident(config.bucket)
        self._con: Optional[sqlite3.Connection] = None
        self._closed = False

    # ---------- lifecycle ----------
    @classmethod
    def open(cls, path: str, bucket: str = DEFAULT_BUCKET, read_only: bool = False,
             timeout: float = DEFAULT_TIMEOUT) -> "Store":
        return cls.from_config(StoreConfig(path=path, bucket=bucket, read_only=read_only, timeout=timeout))

    @classmethod
    def from_config(cls, config: StoreConfig) -> "Store":
        """
        Open (or create) the database described by ``config``.

        Raises:
            OpenError: read-write file cannot be opened or the bucket created
        """
        store = cls(config)
        if not config.read_only:
            store._open_read_write()
        log.debug(f"Store opened: path={config.path} bucket={config.bucket} read_only={config.read_only}")
        return store

    def _open_read_write(self) -> None:
        path = self._config.path
        try:
            con = sqlite3.connect(path, timeout=self._config.timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise OpenError(f"failed to open database '{path}': {e}") from e
        try:
            mode = con.execute("PRAGMA journal_mode=WAL").fetchone()[0]
            con.execute(
                f"CREATE TABLE IF NOT EXISTS {self._table} (k TEXT PRIMARY KEY, v BLOB NOT NULL) WITHOUT ROWID"
            )
        except sqlite3.Error as e:
            con.close()
            raise OpenError(f"failed to ensure bucket '{self.bucket}' exists in '{path}': {e}") from e
        if mode != "wal":
            log.warning(f"WAL journaling unavailable for {path} (journal_mode={mode}); "
                        f"readers will wait on running writes")
        self._con = con

    def _open_read_only(self) -> sqlite3.Connection:
        path = self._config.path
        if not os.path.isfile(path):
            raise NotFoundError(f"database '{path}' does not exist")
        try:
            con = sqlite3.connect(_readonly_uri(path), uri=True, timeout=self._config.timeout,
                                  isolation_level=None)
            _apply_read_optimized_pragmas(con)
        except sqlite3.Error as e:
            raise OpenError(f"failed to open database '{path}' read-only: {e}") from e
        return con

    def _connection(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreClosedError(f"store '{self.path}' is closed; open a new handle")
        if self._con is None:
            self._con = self._open_read_only()
        return self._con

    def _writable_connection(self) -> sqlite3.Connection:
        if self.read_only:
            raise ReadOnlyError(f"store '{self.path}' is opened read-only")
        return self._connection()

    def _raise_for(self, err: sqlite3.Error, action: str) -> None:
        if _is_missing_table(err):
            raise NotFoundError(f"bucket '{self.bucket}' not found in '{self.path}' during {action}") from err
        raise StoreError(f"{action} failed on '{self.path}': {err}") from err

    def close(self) -> None:
        """Release the file handle. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._con is not None:
            log.debug(f"Closing store {self.path}")
            con, self._con = self._con, None
            con.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---------- properties ----------
    @property
    def path(self) -> str:
        return self._config.path

    @property
    def bucket(self) -> str:
        return self._config.bucket

    @property
    def read_only(self) -> bool:
        return self._config.read_only

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def config(self) -> StoreConfig:
        return self._config

    # ---------- reads ----------
    def get(self, key: str) -> Tuple[Optional[Record], bool]:
        """
        Point lookup.

        Args:
            key: Headword in any case

        Returns:
            (record, True) if present, (None, False) if not

        Raises:
            DecodeError: the stored value for this key is corrupt
            NotFoundError: read-only store without file or bucket
        """
        con = self._connection()
        try:
            row = con.execute(f"SELECT v FROM {self._table} WHERE k = ?", (normalize_key(key),)).fetchone()
        except sqlite3.Error as e:
            self._raise_for(e, "get")
        if row is None:
            return None, False
        return codec.decode(row[0]), True

    def scan_all(self) -> Iterator[Tuple[str, bytes]]:
        """
        Iterate over every (key, encoded value) pair in key order.

        Each call starts a fresh scan; the iterator is lazy, so errors surface
        on the first next().
        """
        con = self._connection()
        try:
            cur = con.execute(f"SELECT k, v FROM {self._table} ORDER BY k")
        except sqlite3.Error as e:
            self._raise_for(e, "scan")
        try:
            for k, v in cur:
                yield k, bytes(v)
        finally:
            cur.close()

    def count(self) -> int:
        con = self._connection()
        try:
            row = con.execute(f"SELECT COUNT(*) FROM {self._table}").fetchone()
        except sqlite3.Error as e:
            self._raise_for(e, "count")
        return int(row[0])

    # ---------- writes ----------
    def put(self, key: str, record: Optional[Mapping[str, str]]) -> None:
        """Write one record in its own transaction, overwriting any previous value."""
        value = codec.encode(record)
        con = self._writable_connection()
        try:
            con.execute(f"INSERT OR REPLACE INTO {self._table}(k, v) VALUES (?, ?)", (normalize_key(key), value))
        except sqlite3.Error as e:
            raise TransactionError(f"failed to put key '{key}' into bucket '{self.bucket}': {e}") from e

    def run_batch(self, fn: Callable[[Batch], T]) -> T:
        """
        Run ``fn(batch)`` inside one write transaction.

        Everything ``fn`` writes commits together when it returns. If it
        raises, the transaction is rolled back and nothing is visible; engine
        errors are re-raised as TransactionError, anything else as is.
        """
        con = self._writable_connection()
        try:
            con.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise TransactionError(f"failed to begin write transaction on '{self.path}': {e}") from e

        batch = Batch(con, self._table)
        try:
            result = fn(batch)
            con.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(con)
            raise TransactionError(f"write transaction on '{self.path}' failed, rolled back: {e}") from e
        except BaseException:
            self._rollback(con)
            raise
        finally:
            batch._active = False
        log.debug(f"Committed batch of {batch.writes} writes to {self.path}")
        return result

    def _rollback(self, con: sqlite3.Connection) -> None:
        if not con.in_transaction:
            return
        try:
            con.execute("ROLLBACK")
        except sqlite3.Error as e:
            log.error(f"Rollback on {self.path} failed: {e}")

    # ---------- maintenance ----------
    def compact(self, temp_path: Optional[str] = None) -> None:
        """
        Rewrite the database file to reclaim free space.

        This handle is closed by the operation; open a new Store afterwards.
        See nedict.compaction.compact().
        """
        compaction.compact(self, temp_path)

    def __repr__(self) -> str:
        mode = "ro" if self.read_only else "rw"
        state = "closed" if self._closed else "open"
        return f"<Store {self.path!r} bucket={self.bucket!r} {mode} {state}>"
