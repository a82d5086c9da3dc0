"""
Query path: exact lookup with a "did you mean" fallback.

Steps:
1. get(term); a hit is returned as is
2. on a miss, find_similar(term, max_distance)
3. if anything was suggested, get() the top suggestion

Usage:
    with Store.open(db_path, read_only=True) as store:
        result = lookup(store, "develp")
        if not result.found and result.suggested_term:
            print(f"Did you mean '{result.suggested_term}'?")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List, Optional

from .codec import Record
from .normalizer import normalize_key
from .store import Store
from .suggest import find_similar


@dataclass
class LookupResult:
    """Result of one lookup."""
    term: str                               # normalized query term
    found: bool                             # exact entry exists
    record: Optional[Record] = None         # exact entry, or the top suggestion's
    suggestions: List[str] = field(default_factory=list)
    suggested_term: Optional[str] = None    # set when record belongs to a suggestion
    latency_ms: float = 0.0


def lookup(store: Store, term: str, max_distance: int = 1, suggest: bool = True) -> LookupResult:
    """
    Resolve ``term`` to a record.

    Args:
        store: Open store (read-only is enough)
        term: Headword as typed by the user
        max_distance: Edit distance for suggestions
        suggest: Fall back to suggestions on a miss

    Returns:
        LookupResult; found=False with record=None means nothing matched

    Raises:
        DecodeError: the exact entry (or the suggested one) is corrupt
        NotFoundError: missing database or bucket
    """
    start = time.time()
    key = normalize_key(term)

    record, found = store.get(key)
    if found or not suggest or not key:
        return LookupResult(term=key, found=found, record=record,
                            latency_ms=(time.time() - start) * 1000)

    suggestions = find_similar(store, key, max_distance)
    result = LookupResult(term=key, found=False, suggestions=suggestions)
    if suggestions:
        top = suggestions[0]
        result.record, hit = store.get(top)
        if hit:
            result.suggested_term = top
    result.latency_ms = (time.time() - start) * 1000
    return result
