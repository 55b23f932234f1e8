"""
Record kinds and boundary validation.

Records stay plain mappings so that any extra field is allowed; this
module only checks what every record of a given docType must carry.

Invariants:
    - Every stored record has a non-empty string id and a docType
    - Validation errors are deterministic
    - Missing fields suggest similar keys that were supplied
"""

from __future__ import annotations

import json
from difflib import get_close_matches
from enum import Enum
from typing import Any, Dict, List, Tuple

from ..errors import ValidationError


class DocType(Enum):
    """Discriminant stored in every record's docType field."""

    ASSET = "asset"
    PAYMENT_DETAILS = "paymentDetails"


REQUIRED_FIELDS: Dict[DocType, Tuple[str, ...]] = {
    DocType.ASSET: ("id",),
    DocType.PAYMENT_DETAILS: ("id", "payeer_id", "resume_id"),
}

# Projection used when listing every asset
LIST_FIELDS: Tuple[str, ...] = (
    "id",
    "candidate_name",
    "created_at",
    "current_company",
    "current_ctc",
    "docType",
    "education",
    "first_name",
    "last_name",
    "owner",
    "resume_id",
    "technologies",
    "metaMask_token",
)

# Search results also expose demographics
SEARCH_FIELDS: Tuple[str, ...] = LIST_FIELDS + ("gender", "experience")

# Wallet lookups return the caller's own profile, contact details included
PROFILE_FIELDS: Tuple[str, ...] = SEARCH_FIELDS + ("email", "phone")

WALLET_FIELD = "metaMask_token"


def parse_json_object(text: Any, argument: str) -> Dict[str, Any]:
    """Parse a JSON argument that must be an object."""
    value = parse_json(text, argument)
    if not isinstance(value, dict):
        raise ValidationError(f"{argument} must be a JSON object", field_name=argument)
    return value


def parse_json(text: Any, argument: str) -> Any:
    """Parse a JSON argument, passing already-decoded values through."""
    if not isinstance(text, (str, bytes, bytearray)):
        return text
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{argument} is not valid JSON: {e}", field_name=argument)


def validate_record(record: Dict[str, Any], doc_type: DocType) -> Tuple[bool, List[str]]:
    """Validate a record against its kind.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors: List[str] = []
    required = REQUIRED_FIELDS[doc_type]
    extra_keys = [k for k in record if k not in required]

    for name in required:
        value = record.get(name)
        if value is None or value == "":
            suggestions = get_close_matches(name, extra_keys, n=1)
            if suggestions:
                errors.append(f"Field '{name}' is required. Did you mean: {suggestions}?")
            else:
                errors.append(f"Field '{name}' is required")

    record_id = record.get("id")
    if record_id not in (None, "") and not isinstance(record_id, str):
        errors.append("Field 'id' must be a string")

    if "docType" in record and record["docType"] != doc_type.value:
        stored = record["docType"]
        errors.append(f"Field 'docType' must be '{doc_type.value}', got {stored!r}")

    return len(errors) == 0, errors


def ensure_valid(record: Dict[str, Any], doc_type: DocType) -> None:
    """Raise ValidationError if the record is not a valid doc_type record."""
    valid, errors = validate_record(record, doc_type)
    if not valid:
        raise ValidationError(
            f"Invalid {doc_type.value} record: {'; '.join(errors)}",
            errors=errors,
        )
