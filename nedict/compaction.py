"""
Offline compaction of the database file.

SQLite never shrinks its file after bulk writes or overwrites; freed pages
stay on the freelist. Compaction copies the logical content into a fresh
file and swaps it in:

    1. close the caller's write handle
    2. reopen the same file read-only
    3. start from an empty file at the temp path
    4. VACUUM INTO the temp path (native whole-database copy, defragmented)
    5. close the read-only handle
    6. delete the original file and its -wal/-shm files   <- point of no return
    7. rename the temp file to the original path

The caller's Store is closed afterwards and must be reopened. Failures before
step 6 leave the original untouched and remove the temp file; failures at or
after step 6 raise CompactionRecoveryError and keep the temp file so it can be
renamed back by hand.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .config import temp_path_for
from .errors import CompactionError, CompactionRecoveryError

if TYPE_CHECKING:
    from .store import Store

log = logging.getLogger(__name__)

WAL_SIDE_SUFFIXES = ("-wal", "-shm")


def _remove_if_exists(path: str) -> None:
    if os.path.exists(path):
        os.remove(path)


def _remove_database(db_path: str) -> None:
    os.remove(db_path)
    # a leftover WAL would be replayed onto the file renamed into place
    for suffix in WAL_SIDE_SUFFIXES:
        _remove_if_exists(db_path + suffix)


def _copy_to_temp(db_path: str, temp_path: str) -> None:
    uri = Path(db_path).resolve().as_uri() + "?mode=ro"
    try:
        src = sqlite3.connect(uri, uri=True, isolation_level=None)
    except sqlite3.Error as e:
        raise CompactionError(f"failed to open '{db_path}' read-only for compaction: {e}") from e
    try:
        src.execute("VACUUM INTO ?", (os.path.abspath(temp_path),))
    except sqlite3.Error as e:
        raise CompactionError(f"failed to copy '{db_path}' to '{temp_path}': {e}") from e
    finally:
        src.close()


def compact(store: "Store", temp_path: Optional[str] = None) -> None:
    """
    Compact the database behind ``store`` in place.

    Args:
        store: Open read-write handle; it is closed by this call
        temp_path: Where to build the compacted copy (default: "<db>.tmp")

    Raises:
        CompactionError: nothing was changed on disk
        CompactionRecoveryError: the original was removed (or removal failed
            midway); the compacted copy is at ``temp_path``
    """
    if store.closed:
        raise CompactionError("cannot compact a closed store")
    if store.read_only:
        raise CompactionError(f"cannot compact '{store.path}' through a read-only handle")

    db_path = store.path
    temp_path = temp_path or temp_path_for(db_path)
    if os.path.abspath(temp_path) == os.path.abspath(db_path):
        raise CompactionError("temp path must differ from the database path")

    log.info(f"Starting database compaction: {db_path} -> {temp_path}")

    # 1. the caller's handle is gone from here on; closing it checkpoints the WAL
    store.close()
    before = os.path.getsize(db_path)
    log.debug(f"Write handle on {db_path} closed for compaction")

    # 2-5. copy into a fresh temp file
    try:
        _remove_if_exists(temp_path)
        _copy_to_temp(db_path, temp_path)
    except (CompactionError, OSError) as e:
        try:
            _remove_if_exists(temp_path)
        except OSError as cleanup_err:
            log.warning(f"Could not remove temp file {temp_path}: {cleanup_err}")
        if isinstance(e, CompactionError):
            raise
        raise CompactionError(f"failed to prepare temp file '{temp_path}': {e}") from e
    log.debug("Data copy for compaction successful")

    # 6. point of no return
    try:
        _remove_database(db_path)
    except OSError as e:
        raise CompactionRecoveryError(
            f"failed to remove original '{db_path}' to replace it with '{temp_path}': {e}; "
            f"manual recovery may be needed",
            db_path=db_path, temp_path=temp_path,
        ) from e

    # 7.
    try:
        os.replace(temp_path, db_path)
    except OSError as e:
        raise CompactionRecoveryError(
            f"failed to rename '{temp_path}' to '{db_path}': {e}; "
            f"the original is gone, move '{temp_path}' back by hand",
            db_path=db_path, temp_path=temp_path,
        ) from e

    after = os.path.getsize(db_path)
    log.info(f"Compaction complete: {before / 1_000_000:.1f} MB -> {after / 1_000_000:.1f} MB ({db_path})")
