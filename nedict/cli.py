"""
Command line entry points.

  nedict-build   import the ECDICT CSV into the store, then compact it
  nedict         look a word up (with "did you mean" suggestions)

Usage:
  nedict-build --csv ./assets/ecdict.csv --dbpath ./ecdict.sqlite
  nedict hello
  nedict -j -f develp
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from typing import List, Optional

from dotenv import load_dotenv

from .codec import Record
from .config import (
    DEFAULT_BUCKET,
    DEFAULT_DB_NAME,
    StoreConfig,
    default_bucket,
    resolve_csv_path,
    resolve_db_path,
    temp_path_for,
)
from .errors import CompactionRecoveryError, NeDictError
from .importer import import_csv
from .lookup import LookupResult, lookup
from .normalizer import expand_escapes, normalize_key
from .store import Store

log = logging.getLogger(__name__)

KEY_COLUMN_WIDTH = 15
VALUE_COLUMN_WIDTH = 60
DISPLAY_FIELDS = ["translation", "definition", "exchange"]


def _setup_logging(level: int) -> None:
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    logging.getLogger("nedict").setLevel(level)


def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{text}'") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


# ----- rendering -----
def table_rows(term: str, record: Record, full: bool = False) -> List[List[str]]:
    """(field, value) rows for display; escapes expanded, blank values dropped."""
    rows = [["term", term]]
    fields = sorted(k for k in record if k != "term") if full else DISPLAY_FIELDS
    for name in fields:
        if name not in record:
            continue
        value = expand_escapes(record[name])
        if value.strip():
            rows.append([name, value])
    return rows


def render_table(rows: List[List[str]]) -> str:
    border = "+" + "-" * (KEY_COLUMN_WIDTH + 2) + "+" + "-" * (VALUE_COLUMN_WIDTH + 2) + "+"
    out = [border]
    for name, value in rows:
        lines: List[str] = []
        for part in value.splitlines() or [""]:
            lines.extend(textwrap.wrap(part, VALUE_COLUMN_WIDTH) or [""])
        for i, line in enumerate(lines):
            left = name if i == 0 else ""
            out.append(f"| {left:<{KEY_COLUMN_WIDTH}} | {line:<{VALUE_COLUMN_WIDTH}} |")
        out.append(border)
    return "\n".join(out)


def result_to_json(result: LookupResult) -> dict:
    if result.found:
        return {"term": result.term, "data": result.record}
    if result.suggested_term:
        return {
            "term": result.term,
            "suggestion": result.suggested_term,
            "suggestions": result.suggestions,
            "data": result.record,
        }
    return {"term": result.term, "error": "term not found"}


# ----- nedict -----
def lookup_main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    ap = argparse.ArgumentParser(prog="nedict", description="Look a term up in the ECDICT store.")
    ap.add_argument("term", help="Word to look up")
    ap.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging output")
    ap.add_argument("-j", "-q", "--json", dest="json", action="store_true", help="Output result as JSON")
    ap.add_argument("-f", "--full", action="store_true", help="Show every field in plain text output")
    ap.add_argument("-d", "--dbpath", help=f"Database file (default: $NEDICT_DB, PATH, ~/.cache/ne/{DEFAULT_DB_NAME})")
    ap.add_argument("-b", "--bucket", help=f"Bucket name (default: $NEDICT_BUCKET or '{DEFAULT_BUCKET}')")
    ap.add_argument("-m", "--max-distance", type=_non_negative_int, default=1, help="Edit distance for suggestions (default: 1)")
    args = ap.parse_args(argv)

    _setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        db_path = resolve_db_path(args.dbpath)
    except FileNotFoundError as e:
        log.error(f"Failed to find database file: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    bucket = args.bucket or default_bucket()
    log.info(f"Reading '{args.term}' from {db_path} (bucket '{bucket}')")

    try:
        with Store.from_config(StoreConfig(path=db_path, bucket=bucket, read_only=True)) as store:
            result = lookup(store, args.term, max_distance=args.max_distance)
    except NeDictError as e:
        if args.json:
            print(json.dumps({"term": normalize_key(args.term), "error": f"Error retrieving key: {e}"},
                             ensure_ascii=False))
        else:
            print(f"Error retrieving key '{args.term}': {e}", file=sys.stderr)
        log.error(f"Lookup of '{args.term}' failed: {e}")
        return 1

    if args.json:
        print(json.dumps(result_to_json(result), ensure_ascii=False, indent=2))
        return 0

    if not result.found:
        log.warning(f"term not found '{result.term}' in bucket '{bucket}' of database '{db_path}'")
        if not result.suggested_term:
            print(f"term not found '{result.term}' in bucket '{bucket}' of database '{db_path}'.")
            return 0
        print(f"term not found '{result.term}'. Did you mean: {', '.join(result.suggestions)}?")
        rows = table_rows(result.suggested_term, result.record or {}, args.full)
    else:
        rows = table_rows(result.term, result.record or {}, args.full)

    print(render_table(rows))
    return 0


# ----- nedict-build -----
def build_main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    ap = argparse.ArgumentParser(prog="nedict-build",
                                 description="Import an ECDICT CSV file into the key-value store.")
    ap.add_argument("-c", "--csv", help="CSV file (default: $NEDICT_CSV, ./assets/ecdict.csv, ./ecdict.csv)")
    ap.add_argument("-d", "--dbpath", help=f"Database file (default: $NEDICT_DB, PATH, ~/.cache/ne/{DEFAULT_DB_NAME})")
    ap.add_argument("-b", "--bucket", help=f"Bucket name (default: $NEDICT_BUCKET or '{DEFAULT_BUCKET}')")
    ap.add_argument("--temp", help="Temp file used by compaction (default: <dbpath>.tmp)")
    ap.add_argument("--no-progress", dest="progress", action="store_false", help="Hide the progress bar")
    args = ap.parse_args(argv)

    _setup_logging(logging.INFO)

    try:
        csv_path = resolve_csv_path(args.csv)
        db_path = resolve_db_path(args.dbpath, create=True)
    except OSError as e:
        log.error(f"Failed to resolve paths: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    bucket = args.bucket or default_bucket()

    log.info(f"Using CSV file {csv_path}")
    log.info(f"Target database {db_path} (bucket '{bucket}')")

    try:
        store = Store.from_config(StoreConfig(path=db_path, bucket=bucket))
        try:
            count = import_csv(store, csv_path, show_progress=args.progress)
            log.info(f"Import completed: {count:,} records")
            store.compact(args.temp or temp_path_for(db_path))
        finally:
            store.close()
    except CompactionRecoveryError as e:
        log.error(f"Compaction failed past the point of no return: {e}")
        print(f"Error: {e}\nThe compacted copy is at '{e.temp_path}'; move it to '{e.db_path}'.",
              file=sys.stderr)
        return 1
    except NeDictError as e:
        log.error(f"Build failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log.info("Process completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(lookup_main())
