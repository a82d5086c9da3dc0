"""
"Did you mean" suggestions for headwords missing from the store.

There is no approximate-match index: the whole bucket is scanned in key order
and cheap checks keep the scan fast.

Architecture:
    Runtime (after an exact lookup missed):
        1. User term: "develp"
        2. Normalize term
        3. Scan every (key, value) pair in the store
        4. Stop early once more than 10 qualifying candidates are collected
        5. Length pruning: |len(key) - len(term)| > max_distance -> skip
        6. Levenshtein distance on survivors, keep 0 < d <= max_distance
        7. Decode value, read the "frq" rank (missing / non-numeric -> 0)
        8. Sort by rank ascending, then by key length descending
        9. Return top 3 keys

The distance threshold is static for the whole scan: finding a closer match
does not narrow max_distance for later keys. The early stop can miss a better
match further along in key order.

Usage:
    with Store.open(db_path, read_only=True) as store:
        find_similar(store, "develp", max_distance=1)
        # ['devel', 'develop']
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Protocol, Tuple

import Levenshtein

from . import codec
from .errors import DecodeError
from .normalizer import normalize_key

log = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3
MAX_CANDIDATES = 10     # stop scanning once more than this many qualify
FREQUENCY_FIELD = "frq"

_INT_RE = re.compile(r"^[+-]?\d+$")


class Scannable(Protocol):
    def scan_all(self) -> Iterator[Tuple[str, bytes]]: ...


@dataclass(frozen=True)
class Candidate:
    """Qualifying key kept only for ranking."""
    word: str
    freq: int
    length: int


def parse_frequency(value: Optional[str]) -> int:
    """
    Read a frequency rank. Lower is more frequent; anything unusable is 0.

    Examples:
        >>> parse_frequency("70")
        70
        >>> parse_frequency("")
        0
        >>> parse_frequency("n/a")
        0
    """
    if value is None or not _INT_RE.match(value):
        return 0
    return int(value)


def rank_candidates(candidates: Iterable[Candidate], limit: int = MAX_SUGGESTIONS) -> List[str]:
    """Order by rank ascending, longer word first on ties, and keep ``limit`` words."""
    ranked = sorted(candidates, key=lambda c: (c.freq, -c.length))
    return [c.word for c in ranked[:limit]]


def find_similar(
    store: Scannable,
    term: str,
    max_distance: int = 1,
    *,
    limit: int = MAX_SUGGESTIONS,
    max_candidates: int = MAX_CANDIDATES,
    freq_field: str = FREQUENCY_FIELD,
) -> List[str]:
    """
    Find stored headwords within ``max_distance`` edits of ``term``.

    Exact matches (distance 0) are never returned; call this only after the
    exact lookup failed.

    Args:
        store: Anything with scan_all() -> (key, encoded record) pairs
        term: Query headword (normalized here)
        max_distance: Largest Levenshtein distance accepted (static)
        limit: Number of keys returned at most
        max_candidates: Scan stops once more than this many keys qualify
        freq_field: Record field holding the frequency rank

    Returns:
        Up to ``limit`` keys, best first

    Raises:
        ValueError: max_distance is negative
        NotFoundError / StoreError: from the store scan
    """
    if max_distance < 0:
        raise ValueError(f"max_distance must be >= 0, got {max_distance}")
    word = normalize_key(term)
    if not word:
        return []

    start = time.time()
    word_len = len(word)
    candidates: List[Candidate] = []
    scanned = 0
    compared = 0

    for key, value in store.scan_all():
        if len(candidates) > max_candidates:
            break
        scanned += 1

        key_len = len(key)
        # length difference is a lower bound on edit distance
        if abs(key_len - word_len) > max_distance:
            continue

        compared += 1
        dist = Levenshtein.distance(word, key)
        if dist == 0 or dist > max_distance:
            continue

        try:
            record = codec.decode(value)
        except DecodeError as e:
            log.warning(f"Failed to deserialize value for suggestion '{key}', skipping: {e}")
            continue

        candidates.append(Candidate(word=key, freq=parse_frequency(record.get(freq_field)), length=key_len))

    result = rank_candidates(candidates, limit)
    log.debug(
        f"find_similar('{word}', {max_distance}): scanned={scanned} compared={compared} "
        f"qualified={len(candidates)} -> {result} in {(time.time() - start) * 1000:.1f}ms"
    )
    return result
