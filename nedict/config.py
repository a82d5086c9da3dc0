"""Defaults and path resolution for the dictionary store.

Environment (read at call time, typically after the CLI ran load_dotenv()):
  NEDICT_DB      path to the database file
  NEDICT_BUCKET  bucket (table) name inside the database
  NEDICT_CSV     default source CSV for the builder
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DB_NAME = "ecdict.sqlite"
DEFAULT_BUCKET = "ecdict"
DEFAULT_CSV_DIR = "assets"
DEFAULT_CSV_NAME = "ecdict.csv"
DEFAULT_TIMEOUT = 5.0
CACHE_DIR = Path.home() / ".cache" / "ne"

PROGRESS_REPORT_INTERVAL = 50000


@dataclass(frozen=True)
class StoreConfig:
    path: str
    bucket: str = DEFAULT_BUCKET
    read_only: bool = False
    timeout: float = DEFAULT_TIMEOUT  # seconds to wait on a locked database


def default_bucket() -> str:
    return os.getenv("NEDICT_BUCKET") or DEFAULT_BUCKET


def temp_path_for(db_path: str) -> str:
    return f"{db_path}.tmp"


def _search_path(name: str) -> Optional[str]:
    for d in os.getenv("PATH", "").split(os.pathsep):
        if not d:
            continue
        p = os.path.join(d, name)
        if os.path.isfile(p):
            return p
    return None


def resolve_db_path(explicit: Optional[str] = None, *, create: bool = False,
                    name: str = DEFAULT_DB_NAME) -> str:
    """
    Find the database file.

    Order: explicit path, $NEDICT_DB, a file called ``name`` in any $PATH
    directory, then ~/.cache/ne/<name>.

    Args:
        explicit: Path given on the command line
        create: Builder mode; the cache directory is created and the cache
            path returned even if the file does not exist yet
        name: Database file name to look for

    Raises:
        FileNotFoundError: lookup mode and nothing was found
    """
    if explicit:
        return explicit
    env = os.getenv("NEDICT_DB")
    if env:
        return env

    found = _search_path(name)
    if found:
        return found

    cached = CACHE_DIR / name
    if create:
        cached.parent.mkdir(parents=True, exist_ok=True)
        return str(cached)
    if cached.is_file():
        return str(cached)
    raise FileNotFoundError(f"'{name}' not found in PATH directories or in {CACHE_DIR}")


def resolve_csv_path(explicit: Optional[str] = None) -> str:
    """
    Locate the source CSV: explicit, $NEDICT_CSV, ./assets/ecdict.csv, ./ecdict.csv.

    Raises:
        FileNotFoundError: none of the candidates exists
    """
    if explicit:
        if not os.path.isfile(explicit):
            raise FileNotFoundError(f"specified CSV file '{explicit}' not found or not accessible")
        return explicit

    candidates = [os.getenv("NEDICT_CSV"),
                  os.path.join(DEFAULT_CSV_DIR, DEFAULT_CSV_NAME),
                  DEFAULT_CSV_NAME]
    for c in candidates:
        if c and os.path.isfile(c):
            return c
    raise FileNotFoundError(
        f"default CSV file not found in '{DEFAULT_CSV_DIR}' or current directory, and --csv not provided"
    )
