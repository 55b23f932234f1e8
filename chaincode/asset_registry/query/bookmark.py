"""
Opaque pagination bookmarks.

A bookmark is URL-safe base64 of the canonical JSON
{"k": <last key returned>, "q": <query fingerprint>}. Binding the bookmark
to the query fingerprint means a cursor issued for one selector cannot be
replayed against another.
"""

from __future__ import annotations

import base64
import binascii
from typing import Optional

from .. import codec
from ..errors import InvalidBookmarkError, MalformedRecordError
from .selector import Query


def encode_bookmark(last_key: str, query: Query) -> str:
    """Build the bookmark that resumes right after last_key."""
    payload = codec.encode({"k": last_key, "q": query.fingerprint})
    return base64.urlsafe_b64encode(payload).decode("ascii")


def decode_bookmark(bookmark: Optional[str], query: Query) -> Optional[str]:
    """Resolve a bookmark to the key to resume after.

    Args:
        bookmark: Bookmark from a previous page, or empty to start
        query: Query the bookmark must have been issued for

    Returns:
        Last key of the previous page, or None to start from the beginning

    Raises:
        InvalidBookmarkError: If the bookmark does not resolve
    """
    if not bookmark:
        return None

    try:
        raw = base64.b64decode(bookmark.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise InvalidBookmarkError(bookmark, "not base64")

    try:
        data = codec.decode(raw)
    except MalformedRecordError:
        raise InvalidBookmarkError(bookmark, "not a bookmark payload")

    if not isinstance(data, dict) or not isinstance(data.get("k"), str) or "q" not in data:
        raise InvalidBookmarkError(bookmark, "missing cursor fields")
    if data["q"] != query.fingerprint:
        raise InvalidBookmarkError(bookmark, "issued for a different query")

    return data["k"]
