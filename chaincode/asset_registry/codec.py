"""
Canonical record encoding for the world state.

Every record written to the world state goes through encode() so that
independent executions over the same logical content produce identical
bytes, and therefore identical write sets and hashes.

Invariants:
    - Mapping keys are sorted lexicographically at every nesting level
    - List order is preserved (it is significant)
    - Compact separators, no insignificant whitespace
    - UTF-8 output, non-ASCII characters kept literal
    - decode(encode(r)) == r for every JSON-compatible record

How to change safely:
    - Any change to the byte layout changes every stored hash; treat it as
      a state migration
    - Keep decode_lenient() non-raising for bad JSON; query iterators rely
      on it
"""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Union

from .errors import MalformedRecordError, ValidationError

Record = Dict[str, Any]

_SEPARATORS = (",", ":")


def _check_value(value: Any, path: str) -> None:
    """Reject values that have no stable JSON rendering."""
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"Non-finite number at '{path}'", field_name=path)
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(
                    f"Mapping key {key!r} at '{path}' is not a string", field_name=path
                )
            _check_value(item, f"{path}.{key}" if path else key)
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_value(item, f"{path}[{index}]")
        return
    raise ValidationError(
        f"Value of type {type(value).__name__} at '{path}' is not JSON-compatible",
        field_name=path,
    )


def encode(record: Any) -> bytes:
    """Encode a record into canonical bytes.

    Args:
        record: JSON-compatible value, normally a mapping

    Returns:
        UTF-8 bytes with recursively sorted keys and compact separators

    Raises:
        ValidationError: If the value is not JSON-compatible
    """
    _check_value(record, "")
    return json.dumps(
        record,
        sort_keys=True,
        separators=_SEPARATORS,
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def decode(data: Union[bytes, str], key: str | None = None) -> Any:
    """Decode canonical bytes back into a record.

    Raises:
        MalformedRecordError: If the bytes are not valid UTF-8 JSON
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedRecordError(f"Failed to parse record as JSON: {e}", key=key)


@dataclass(frozen=True)
class DecodedValue:
    """Outcome of a best-effort decode.

    Attributes:
        value: Parsed record, or the raw text when parsing failed
        malformed: True when value is the raw text fallback
    """

    value: Any
    malformed: bool = False


def decode_lenient(data: Union[bytes, str]) -> DecodedValue:
    """Decode bytes, falling back to the raw text instead of raising."""
    if isinstance(data, (bytes, bytearray)):
        text = bytes(data).decode("utf-8", errors="replace")
    else:
        text = data
    try:
        return DecodedValue(json.loads(text))
    except json.JSONDecodeError:
        return DecodedValue(text, malformed=True)


def digest(record: Any) -> str:
    """SHA-256 hex digest of the canonical encoding."""
    return hashlib.sha256(encode(record)).hexdigest()
