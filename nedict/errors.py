"""Error taxonomy for the dictionary store.

Row- and entry-level errors (RowError, DecodeError during a scan) are
recovered by the caller with a log record; everything else terminates the
operation that raised it.
"""

from __future__ import annotations

from typing import Optional


class NeDictError(Exception):
    """Base class for every error raised by nedict."""


# ----- store -----
class StoreError(NeDictError):
    """The storage engine reported an error."""


class OpenError(StoreError):
    """The backing file cannot be created or opened."""


class NotFoundError(StoreError):
    """The database file or bucket does not exist (read-only mode)."""


class StoreClosedError(StoreError):
    """An operation was attempted on a closed (or compacted) store handle."""


class ReadOnlyError(StoreError):
    """A write was attempted through a read-only store handle."""


class TransactionError(StoreError):
    """The engine's write transaction failed; nothing was committed."""


# ----- codec -----
class EncodeError(NeDictError):
    """A record holds a key or value that cannot be encoded."""


class DecodeError(NeDictError):
    """Stored bytes are not a validly encoded record."""


# ----- bulk input -----
class FormatError(NeDictError):
    """The bulk source has no usable header row."""


class RowError(NeDictError):
    """A single data row is malformed and was skipped."""

    def __init__(self, message: str, line: Optional[int] = None):
        super().__init__(message)
        self.line = line


# ----- compaction -----
class CompactionError(NeDictError):
    """Compaction failed before the original file was touched."""


class CompactionRecoveryError(CompactionError):
    """
    Compaction failed at or after deleting the original database file.

    The compacted copy may still be at ``temp_path`` and has to be moved
    back to ``db_path`` by hand.
    """

    def __init__(self, message: str, db_path: str, temp_path: str):
        super().__init__(message)
        self.db_path = db_path
        self.temp_path = temp_path
