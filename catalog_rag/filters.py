"""Metadata filter predicates for catalog retrieval.

A filter is one of four immutable node types:

- ``Equals(field, value)``: metadata[field] == value
- ``In(field, values)``: membership; a list-valued field matches when any of
  its elements is in ``values``, a scalar field when it is in ``values``
- ``All(clauses)``: every clause matches (a multi-key record)
- ``Or(clauses)``: at least one clause matches

``None`` stands for "no filter" and matches everything. A filter that names
a field the metadata record does not carry never matches.

The dict form mirrors the Mongo-style documents the routing tables are
written in::

    {"$or": [{"product": "DL380"}, {"referenced_products": {"$in": ["DL380"]}}]}
    {"document_type": "family-guide", "category": "specs"}   # conjunction
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .exceptions import FilterParseError

_MISSING = object()


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        actual = metadata.get(self.field, _MISSING)
        if actual is _MISSING:
            return False
        return actual == self.value

    def to_dict(self) -> Dict[str, Any]:
        return {self.field: self.value}


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]

    def __init__(self, field: str, values: Iterable[Any]):
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "values", tuple(values))

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        actual = metadata.get(self.field, _MISSING)
        if actual is _MISSING or actual is None:
            return False
        if isinstance(actual, (list, tuple, set, frozenset)):
            return any(item in self.values for item in actual)
        return actual in self.values

    def to_dict(self) -> Dict[str, Any]:
        return {self.field: {"$in": list(self.values)}}


@dataclass(frozen=True)
class All:
    clauses: Tuple["Filter", ...]

    def __init__(self, clauses: Iterable["Filter"]):
        object.__setattr__(self, "clauses", tuple(clauses))

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        return all(clause.matches(metadata) for clause in self.clauses)

    def to_dict(self) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for clause in self.clauses:
            part = clause.to_dict()
            if any(key in merged for key in part):
                # Repeated key (or nested $or) cannot be flattened into one record
                return {"$and": [c.to_dict() for c in self.clauses]}
            merged.update(part)
        return merged


@dataclass(frozen=True)
class Or:
    clauses: Tuple["Filter", ...]

    def __init__(self, clauses: Iterable["Filter"]):
        object.__setattr__(self, "clauses", tuple(clauses))

    def matches(self, metadata: Mapping[str, Any]) -> bool:
        return any(clause.matches(metadata) for clause in self.clauses)

    def to_dict(self) -> Dict[str, Any]:
        return {"$or": [clause.to_dict() for clause in self.clauses]}


Filter = Union[Equals, In, All, Or]


def matches_filter(metadata: Mapping[str, Any], filter: Optional[Filter]) -> bool:
    """Evaluate ``filter`` against a metadata record; ``None`` matches everything."""
    if filter is None:
        return True
    return filter.matches(metadata or {})


def filter_to_dict(filter: Optional[Filter]) -> Optional[Dict[str, Any]]:
    """Serialize a filter (or None) to its dict form."""
    return None if filter is None else filter.to_dict()


def _parse_clause_list(raw: Any, operator: str) -> Tuple[Filter, ...]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise FilterParseError(f"'{operator}' expects a non-empty list of filters, got {raw!r}")
    return tuple(_parse(item) for item in raw)


def _parse_field(field: str, value: Any) -> Filter:
    if isinstance(value, Mapping):
        if len(value) != 1:
            raise FilterParseError(f"Field '{field}' has unsupported operator document {value!r}")
        (op, operand), = value.items()
        if op not in ("$in", "in"):
            raise FilterParseError(f"Unsupported operator '{op}' on field '{field}'")
        if not isinstance(operand, (list, tuple, set, frozenset)):
            raise FilterParseError(f"'{op}' on field '{field}' expects a list, got {operand!r}")
        return In(field, operand)
    if isinstance(value, (list, tuple)):
        raise FilterParseError(f"Field '{field}' has a bare list value; use {{'$in': [...]}}")
    return Equals(field, value)


def _parse(raw: Any) -> Filter:
    if isinstance(raw, (Equals, In, All, Or)):
        return raw
    if not isinstance(raw, Mapping) or not raw:
        raise FilterParseError(f"Expected a non-empty mapping, got {raw!r}")

    clauses = []
    for key, value in raw.items():
        if key in ("$or", "or"):
            clauses.append(Or(_parse_clause_list(value, key)))
        elif key in ("$and", "and"):
            clauses.append(All(_parse_clause_list(value, key)))
        elif isinstance(key, str) and key.startswith("$"):
            raise FilterParseError(f"Unsupported top-level operator '{key}'")
        else:
            clauses.append(_parse_field(key, value))

    if len(clauses) == 1:
        return clauses[0]
    return All(clauses)


def parse_filter(raw: Any) -> Optional[Filter]:
    """Parse a dict filter into filter nodes.

    Accepts ``$or`` / ``$in`` / ``$and`` and the sigil-free ``or`` / ``in`` /
    ``and``. ``None`` passes through. Filter nodes are returned unchanged.

    Raises:
        FilterParseError: On any shape other than the ones above.
    """
    if raw is None:
        return None
    return _parse(raw)
