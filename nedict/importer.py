"""
Bulk loader: CSV dictionary dump -> store, in one transaction.

Input layout (ECDICT):
    word,phonetic,definition,translation,pos,collins,oxford,tag,bnc,frq,exchange,detail,audio
    apple,'æpl,n. fruit with red or yellow or green skin...,n. 苹果,...

Column 0 is the headword (lowercased into the key); every other column becomes
a record field named after its header. Short rows fill only the fields they
have, extra columns are dropped with a warning.

All rows go through a single write transaction: one commit for the whole
file instead of one per row. A bad row is logged and skipped; an engine
failure aborts the load and nothing is committed.

Usage:
    with Store.open("ecdict.sqlite") as store:
        n = import_csv(store, "assets/ecdict.csv", show_progress=True)
"""

from __future__ import annotations

import contextlib
import csv
import logging
import os
from typing import IO, Iterator, List, Optional, Sequence, Tuple, Union

from tqdm import tqdm

from .codec import Record
from .config import PROGRESS_REPORT_INTERVAL
from .errors import EncodeError, FormatError, RowError
from .normalizer import normalize_key
from .store import Batch, Store

log = logging.getLogger(__name__)

Source = Union[str, os.PathLike, IO[str]]


@contextlib.contextmanager
def _open_source(source: Source) -> Iterator[IO[str]]:
    if hasattr(source, "read"):
        yield source
        return
    try:
        f = open(source, "r", encoding="utf-8-sig", errors="surrogateescape", newline="")
    except OSError as e:
        raise FormatError(f"failed to open CSV file '{source}': {e}") from e
    with f:
        yield f


def _iter_rows(reader) -> Iterator[Tuple[int, Optional[List[str]]]]:
    """Yield (line, row); a row the CSV parser rejects is logged and yielded as None."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            log.warning(f"Error reading CSV record near line {reader.line_num}, skipping: {e}")
            yield reader.line_num, None
            continue
        yield reader.line_num, row


def _check_text(value: str, line: int) -> None:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise RowError(f"line {line}: field is not valid UTF-8 ({e.reason})", line=line) from e


def read_header(reader) -> List[str]:
    """
    Read and validate the header row.

    Raises:
        FormatError: no header, or a header with no columns
    """
    try:
        header = next(reader)
    except StopIteration:
        raise FormatError("CSV source is empty or has no header") from None
    except csv.Error as e:
        raise FormatError(f"failed to read CSV header: {e}") from e
    if len(header) < 1:
        raise FormatError("CSV header is invalid (too few columns)")
    for name in header:
        try:
            name.encode("utf-8")
        except UnicodeEncodeError as e:
            raise FormatError(f"CSV header is not valid UTF-8: {e.reason}") from e
    return header


def row_to_record(header: Sequence[str], row: Sequence[str], line: int = 0) -> Tuple[str, Record]:
    """
    Build (key, record) from one data row.

    Args:
        header: Column names; header[0] names the headword column
        row: Field values
        line: Source line number, for messages

    Returns:
        Normalized headword and its record

    Raises:
        RowError: empty row, empty headword, or undecodable text
    """
    if len(row) < 1:
        raise RowError(f"line {line}: empty record", line=line)
    for value in row:
        _check_text(value, line)

    key = normalize_key(row[0])
    if not key:
        raise RowError(f"line {line}: empty headword", line=line)

    if len(row) > len(header):
        log.warning(f"Record '{key}' (line {line}) has {len(row)} columns, header has {len(header)}; "
                    f"extra columns ignored")

    width = min(len(row), len(header))
    record = {header[i]: row[i] for i in range(1, width)}
    return key, record


def import_csv(
    store: Store,
    source: Source,
    progress_interval: int = PROGRESS_REPORT_INTERVAL,
    show_progress: bool = False,
    delimiter: str = ",",
) -> int:
    """
    Load a CSV dump into ``store`` in one all-or-nothing transaction.

    Args:
        store: Read-write store
        source: Path to a CSV file, or an open text stream
        progress_interval: Log a line every N written rows (0 = never)
        show_progress: Show a tqdm progress bar
        delimiter: Field delimiter

    Returns:
        Number of rows written

    Raises:
        FormatError: missing/empty header; nothing is written
        TransactionError: the engine failed; nothing is committed
    """
    name = getattr(source, "name", source)
    log.info(f"Starting CSV import from {name}")

    with _open_source(source) as f:
        reader = csv.reader(f, delimiter=delimiter)
        header = read_header(reader)
        log.info(f"CSV header has {len(header)} columns: {', '.join(header)}")

        def load(batch: Batch) -> int:
            written = 0
            skipped = 0
            rows = tqdm(_iter_rows(reader), desc="Importing", unit=" rows", disable=not show_progress)
            for line, row in rows:
                if row is None:
                    skipped += 1
                    continue
                try:
                    key, record = row_to_record(header, row, line)
                    batch.put(key, record)
                except (RowError, EncodeError) as e:
                    skipped += 1
                    log.warning(f"Skipping CSV record: {e}")
                    continue
                written += 1
                if progress_interval > 0 and written % progress_interval == 0:
                    log.info(f"Processed {written:,} records")
            if skipped:
                log.warning(f"{skipped:,} malformed records were skipped")
            return written

        count = store.run_batch(load)

    log.info(f"Imported {count:,} records into bucket '{store.bucket}' of {store.path}")
    return count
