"""
Query planning for the asset registry.

This module handles:
- Selector parsing into an expression tree with a fixed operator set
- Single-pass iterators over world state scans
- Bookmark-based pagination

Invariants:
    - Unsupported operators fail at parse time
    - Malformed entries are surfaced as raw text, never abort a scan
    - Bookmarks only resume the query they were issued for
"""

from .bookmark import decode_bookmark, encode_bookmark
from .iterator import (
    QueryIterator,
    QueryResponseMetadata,
    QueryResult,
    collect_results,
    fetch_page,
    resolve_start_key,
)
from .selector import Combinator, Compound, FieldPredicate, Operator, Query, parse_selector

__all__ = [
    # Selector model
    "Query",
    "Operator",
    "Combinator",
    "FieldPredicate",
    "Compound",
    "parse_selector",
    # Iteration
    "QueryIterator",
    "QueryResult",
    "QueryResponseMetadata",
    "collect_results",
    "fetch_page",
    "resolve_start_key",
    # Bookmarks
    "encode_bookmark",
    "decode_bookmark",
]
