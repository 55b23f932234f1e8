"""
Declarative selector model for rich queries.

A query arrives as a JSON-compatible structure:

    {"selector": {"docType": "asset", "expires_at": {"$gt": "1700000000"}},
     "fields": ["id", "first_name"]}

It is parsed into a small expression tree so that unsupported operators
fail fast instead of being silently ignored by the store.

Supported operators:
    Field:       $eq $ne $gt $gte $lt $lte $in $nin $exists
    Combinators: $and $or (list of selectors), $not (one selector)

Comparison semantics follow CouchDB collation: values are ordered first by
type class (null < false < true < number < string < array < object) and
then by value within the class. A missing field only satisfies
{"$exists": false}. A field mapped to a mapping without operators selects
sub-fields: {"education": {"degree": "BS"}} is {"education.degree": "BS"}.

Invariants:
    - Parsing never accepts an operator outside the Operator enum
    - matches() is pure and does not mutate the record
    - to_dict() of a parsed query parses back to an equal query
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import UnsupportedOperatorError, ValidationError
from .. import codec

_MISSING = object()


class Operator(Enum):
    """Field-level comparison operators."""

    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"
    IN = "$in"
    NIN = "$nin"
    EXISTS = "$exists"


class Combinator(Enum):
    """Logical operators joining sub-selectors."""

    AND = "$and"
    OR = "$or"
    NOT = "$not"


_FIELD_OPERATORS = {op.value: op for op in Operator}
_COMBINATORS = {c.value: c for c in Combinator}
_SUPPORTED = sorted(list(_FIELD_OPERATORS) + list(_COMBINATORS))


def _collation_key(value: Any) -> Tuple[int, Any]:
    """Order key following CouchDB view collation."""
    if value is None:
        return (0, 0)
    if value is False:
        return (1, 0)
    if value is True:
        return (2, 0)
    if isinstance(value, (int, float)):
        return (3, value)
    if isinstance(value, str):
        return (4, value)
    if isinstance(value, list):
        return (5, [_collation_key(v) for v in value])
    if isinstance(value, dict):
        return (6, [(k, _collation_key(v)) for k, v in sorted(value.items())])
    return (7, repr(value))


def _compare(left: Any, right: Any) -> int:
    a, b = _collation_key(left), _collation_key(right)
    return (a > b) - (a < b)


def resolve_field(record: Any, path: str) -> Any:
    """Resolve a dotted field path inside a record.

    Returns the module-level missing sentinel when any segment is absent.
    """
    current = record
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


@dataclass(frozen=True)
class FieldPredicate:
    """Single (field, operator, value) condition.

    Attributes:
        field: Dotted path into the record
        operator: Comparison operator
        value: Operand
    """

    field: str
    operator: Operator
    value: Any

    def matches(self, record: Any) -> bool:
        actual = resolve_field(record, self.field)
        op = self.operator

        if op is Operator.EXISTS:
            return (actual is not _MISSING) == bool(self.value)
        if actual is _MISSING:
            return False
        if op is Operator.EQ:
            return _compare(actual, self.value) == 0
        if op is Operator.NE:
            return _compare(actual, self.value) != 0
        if op is Operator.GT:
            return _compare(actual, self.value) > 0
        if op is Operator.GTE:
            return _compare(actual, self.value) >= 0
        if op is Operator.LT:
            return _compare(actual, self.value) < 0
        if op is Operator.LTE:
            return _compare(actual, self.value) <= 0
        if op is Operator.IN:
            return any(_compare(actual, v) == 0 for v in self.value)
        if op is Operator.NIN:
            return all(_compare(actual, v) != 0 for v in self.value)
        raise UnsupportedOperatorError(op.value, _SUPPORTED)

    def to_dict(self) -> Dict[str, Any]:
        if self.operator is Operator.EQ and not isinstance(self.value, dict):
            return {self.field: self.value}
        return {self.field: {self.operator.value: self.value}}


@dataclass(frozen=True)
class Compound:
    """Logical combination of sub-expressions."""

    combinator: Combinator
    children: Tuple[Expression, ...]

    def matches(self, record: Any) -> bool:
        if self.combinator is Combinator.AND:
            return all(child.matches(record) for child in self.children)
        if self.combinator is Combinator.OR:
            return any(child.matches(record) for child in self.children)
        return not self.children[0].matches(record)

    def to_dict(self) -> Dict[str, Any]:
        if self.combinator is Combinator.NOT:
            return {self.combinator.value: self.children[0].to_dict()}
        return {self.combinator.value: [child.to_dict() for child in self.children]}


Expression = Union[FieldPredicate, Compound]


def _parse_operand(field_name: str, spec: Dict[str, Any]) -> List[FieldPredicate]:
    predicates = []
    for op_name, operand in spec.items():
        if op_name not in _FIELD_OPERATORS:
            raise UnsupportedOperatorError(op_name, _SUPPORTED)
        op = _FIELD_OPERATORS[op_name]
        if op in (Operator.IN, Operator.NIN) and not isinstance(operand, list):
            raise ValidationError(
                f"Operator {op_name} on '{field_name}' requires a list", field_name=field_name
            )
        if op is Operator.EXISTS and not isinstance(operand, bool):
            raise ValidationError(
                f"Operator $exists on '{field_name}' requires a boolean", field_name=field_name
            )
        predicates.append(FieldPredicate(field_name, op, operand))
    return predicates


def parse_selector(selector: Any) -> Expression:
    """Parse a selector mapping into an expression tree.

    Raises:
        ValidationError: If the selector has the wrong shape
        UnsupportedOperatorError: If an unknown $operator is used
    """
    if not isinstance(selector, dict):
        raise ValidationError("Selector must be a mapping")

    parts: List[Expression] = []
    for key, value in selector.items():
        if key.startswith("$"):
            if key not in _COMBINATORS:
                raise UnsupportedOperatorError(key, _SUPPORTED)
            combinator = _COMBINATORS[key]
            if combinator is Combinator.NOT:
                parts.append(Compound(combinator, (parse_selector(value),)))
                continue
            if not isinstance(value, list) or not value:
                raise ValidationError(f"{key} requires a non-empty list of selectors")
            parts.append(Compound(combinator, tuple(parse_selector(v) for v in value)))
        elif isinstance(value, dict) and value:
            operators = [k for k in value if k.startswith("$")]
            if len(operators) == len(value):
                parts.extend(_parse_operand(key, value))
            elif operators:
                raise ValidationError(
                    f"Selector for '{key}' mixes operators {operators} with sub-fields",
                    field_name=key,
                )
            else:
                # Sub-field selector: {"a": {"b": 1}} is {"a.b": 1}
                parts.append(parse_selector({f"{key}.{sub}": v for sub, v in value.items()}))
        else:
            parts.append(FieldPredicate(key, Operator.EQ, value))

    if len(parts) == 1:
        return parts[0]
    return Compound(Combinator.AND, tuple(parts))


@dataclass(frozen=True)
class Query:
    """Parsed rich query: selector expression plus projection.

    Attributes:
        selector: Raw selector mapping as supplied
        fields: Projected field names (empty means the whole record)
        expression: Parsed expression tree
    """

    selector: Dict[str, Any]
    fields: Tuple[str, ...] = ()
    expression: Expression = field(default=None, compare=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.expression is None:
            object.__setattr__(self, "expression", parse_selector(self.selector))

    @classmethod
    def parse(cls, query: Union[str, bytes, Dict[str, Any]]) -> Query:
        """Parse a query from its JSON text or mapping form."""
        if isinstance(query, (str, bytes)):
            try:
                query = json.loads(query)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Query is not valid JSON: {e}")
        if not isinstance(query, dict):
            raise ValidationError("Query must be a JSON object")

        unknown = set(query) - {"selector", "fields"}
        if unknown:
            raise ValidationError(f"Unsupported query keys: {sorted(unknown)}")
        if "selector" not in query:
            raise ValidationError("Query requires a 'selector'", field_name="selector")

        fields = query.get("fields") or []
        if not isinstance(fields, list) or not all(isinstance(f, str) for f in fields):
            raise ValidationError("'fields' must be a list of strings", field_name="fields")

        return cls(selector=query["selector"], fields=tuple(fields))

    @classmethod
    def build(
        cls,
        selector: Dict[str, Any],
        fields: Optional[List[str]] = None,
    ) -> Query:
        return cls(selector=selector, fields=tuple(fields or ()))

    def matches(self, record: Any) -> bool:
        return self.expression.matches(record)

    def project(self, record: Any) -> Any:
        """Keep only the projected top-level fields that are present."""
        if not self.fields or not isinstance(record, dict):
            return record
        return {name: record[name] for name in self.fields if name in record}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"selector": self.selector}
        if self.fields:
            result["fields"] = list(self.fields)
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @property
    def fingerprint(self) -> str:
        """Stable digest identifying this query, used to bind bookmarks."""
        return codec.digest(self.to_dict())[:16]
