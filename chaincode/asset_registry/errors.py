"""
Error types for the asset registry.

This module defines every exception raised by the registry:
- RegistryError: Base exception
- AlreadyExistsError: Create on a key that is already present
- NotFoundError: Read/update of an absent key
- MalformedRecordError: Stored bytes are not structured data
- InvalidBookmarkError: Pagination cursor does not resolve
- IteratorClosedError: Query iterator used after close
- StoreUnavailableError: World state I/O failure
- ValidationError: Bad record, selector or argument
- UnsupportedOperatorError: Unknown selector operator
- UnknownFunctionError: Unknown contract function

Invariants:
    - All errors inherit from RegistryError
    - Errors include context for debugging
    - Every error aborts the whole operation
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class RegistryError(Exception):
    """Base exception for all asset registry errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "REGISTRY_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Render as a JSON-compatible error body."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class AlreadyExistsError(RegistryError):
    """A record with this key is already in the world state.

    Not retryable: pick another id or use an update.
    """

    def __init__(self, key: str) -> None:
        super().__init__(
            f"The asset {key} already exists",
            code="ALREADY_EXISTS",
            details={"key": key},
        )
        self.key = key


class NotFoundError(RegistryError):
    """No record is stored under this key."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"The asset {key} does not exist",
            code="NOT_FOUND",
            details={"key": key},
        )
        self.key = key


class MalformedRecordError(RegistryError):
    """Stored bytes could not be parsed as a structured record.

    Query iterators recover from this locally by surfacing the raw text;
    only strict decoding raises it.
    """

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="MALFORMED_RECORD",
            details={"key": key},
        )
        self.key = key


class InvalidBookmarkError(RegistryError):
    """Pagination bookmark does not correspond to a resumption point."""

    def __init__(self, bookmark: str, reason: str) -> None:
        super().__init__(
            f"Invalid bookmark: {reason}",
            code="INVALID_BOOKMARK",
            details={"bookmark": bookmark, "reason": reason},
        )
        self.bookmark = bookmark
        self.reason = reason


class IteratorClosedError(RegistryError):
    """Query iterator was consumed after being closed."""

    def __init__(self, message: str = "Query iterator is closed") -> None:
        super().__init__(message, code="ITERATOR_CLOSED")


class StoreUnavailableError(RegistryError):
    """World state backend failed or is not connected.

    Safe to retry the whole operation for reads. Creates must re-check
    existence before retrying.
    """

    def __init__(self, message: str, backend: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STORE_UNAVAILABLE",
            details={"backend": backend},
        )
        self.backend = backend


class ValidationError(RegistryError):
    """Input validation failed.

    Raised when:
    - A required record field is missing
    - A selector has the wrong shape
    - An argument is not valid JSON or out of range
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class UnsupportedOperatorError(RegistryError):
    """Selector uses an operator outside the supported set."""

    def __init__(self, operator: str, supported: Optional[List[str]] = None) -> None:
        supported = supported or []
        msg = f"Unsupported selector operator '{operator}'"
        if supported:
            msg += f". Supported: {', '.join(supported)}"
        super().__init__(
            msg,
            code="UNSUPPORTED_OPERATOR",
            details={"operator": operator, "supported": supported},
        )
        self.operator = operator
        self.supported = supported


class UnknownFunctionError(RegistryError):
    """Contract function name is not part of the exposed surface.

    Includes suggestions for similar function names.
    """

    def __init__(self, function_name: str, suggestions: Optional[List[str]] = None) -> None:
        suggestions = suggestions or []
        msg = f"Unknown contract function '{function_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"
        super().__init__(
            msg,
            code="UNKNOWN_FUNCTION",
            details={"function": function_name, "suggestions": suggestions},
        )
        self.function_name = function_name
        self.suggestions = suggestions
