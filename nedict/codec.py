"""
Record codec.

A record is a flat mapping of field name to field value, both strings
(ECDICT columns such as "translation", "definition", "frq"). Records are
stored as compact UTF-8 JSON objects.

Invariant: decode(encode(r)) == r for every record, and encoding None or an
empty mapping yields a valid encoding of an empty mapping, so decode always
hands back a dict.
"""

from __future__ import annotations

import json
from typing import Dict, Mapping, Optional

from .errors import DecodeError, EncodeError

Record = Dict[str, str]

EMPTY_RECORD = b"{}"


def encode(record: Optional[Mapping[str, str]]) -> bytes:
    """
    Serialize a record to bytes.

    Args:
        record: Field mapping, or None for an empty record

    Returns:
        UTF-8 JSON bytes

    Raises:
        EncodeError: a key or value is not a string
    """
    if not record:
        return EMPTY_RECORD
    for k, v in record.items():
        if not isinstance(k, str) or not isinstance(v, str):
            raise EncodeError(f"unsupported field {k!r}={v!r}: keys and values must be str")
    try:
        return json.dumps(dict(record), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodeError(f"record is not valid unicode: {e}") from e


def decode(data: bytes) -> Record:
    """
    Deserialize bytes produced by encode().

    Raises:
        DecodeError: corrupt or foreign payload
    """
    if data is None:
        raise DecodeError("no data to decode")
    try:
        obj = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"failed to deserialize record: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError(f"expected an encoded mapping, got {type(obj).__name__}")
    for k, v in obj.items():
        if not isinstance(v, str):
            raise DecodeError(f"field {k!r} has non-string value {v!r}")
    return obj
