"""
nedict - offline English/Chinese dictionary store

Loads the ECDICT CSV dump into a single-file key-value store and answers
lookups, with "did you mean" suggestions when a word is missing.

Main Components:
    - codec: Record (field -> value map) serialization
    - store: Key-value store over one SQLite bucket
    - importer: Bulk CSV load in one transaction
    - compaction: Reclaim file space after the load
    - suggest: Nearest headwords by edit distance
    - lookup: Exact lookup with suggestion fallback

Quick Start:
    from nedict import Store, import_csv, lookup

    with Store.open("ecdict.sqlite") as store:
        import_csv(store, "assets/ecdict.csv")
        store.compact()

    with Store.open("ecdict.sqlite", read_only=True) as store:
        result = lookup(store, "develp")
"""

__version__ = "0.1.0"

from .codec import decode, encode
from .compaction import compact
from .config import StoreConfig
from .errors import (
    CompactionError,
    CompactionRecoveryError,
    DecodeError,
    EncodeError,
    FormatError,
    NeDictError,
    NotFoundError,
    OpenError,
    ReadOnlyError,
    RowError,
    StoreClosedError,
    StoreError,
    TransactionError,
)
from .importer import import_csv
from .lookup import LookupResult, lookup
from .normalizer import normalize_key
from .store import Batch, Store
from .suggest import find_similar

__all__ = [
    "encode",
    "decode",
    "compact",
    "StoreConfig",
    "Store",
    "Batch",
    "import_csv",
    "find_similar",
    "lookup",
    "LookupResult",
    "normalize_key",
    "NeDictError",
    "StoreError",
    "OpenError",
    "NotFoundError",
    "StoreClosedError",
    "ReadOnlyError",
    "TransactionError",
    "EncodeError",
    "DecodeError",
    "FormatError",
    "RowError",
    "CompactionError",
    "CompactionRecoveryError",
]
