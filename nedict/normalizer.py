"""
Headword normalization.

Every key is normalized the same way before it is written, read, or compared
during a scan, so "Hello", "HELLO" and "hello" all name one entry.

Functions:
    normalize_key(text: str) -> str: Lowercase, whitespace-trimmed headword
    expand_escapes(text: str) -> str: Turn literal \\n, \\r, \\t into control chars
"""

import re


_ESCAPES = {"\\n": "\n", "\\r": "\r", "\\t": "\t"}
_ESCAPE_RE = re.compile(r"\\[nrt]")


def normalize_key(text: str) -> str:
    """
    Normalize a headword for storage and lookup.

    Args:
        text: Raw headword (CLI argument, CSV column 0, ...)

    Returns:
        Lowercased headword with surrounding whitespace removed

    Examples:
        >>> normalize_key("Hello")
        'hello'

        >>> normalize_key("  New York ")
        'new york'
    """
    if not text:
        return ""
    return text.strip().lower()


def expand_escapes(text: str) -> str:
    """
    Expand the literal backslash escapes used inside dictionary fields.

    ECDICT stores multi-line definitions with a two-character "\\n" sequence.

    Examples:
        >>> expand_escapes("n. apple\\\\nv. to apple")
        'n. apple\\nv. to apple'
    """
    if not text:
        return ""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], text)
