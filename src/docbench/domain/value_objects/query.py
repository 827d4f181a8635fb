"""Query predicates decoded from MongoDB-style filter documents.

A filter document such as::

    {"age": {"$gte": 25, "$lte": 35}, "status": "active"}

is decoded once by :func:`parse_query` into a :class:`Query` holding one
:class:`FieldCondition` per field. Each condition carries a tuple of
predicate variants (:class:`Equals`, :class:`Compare`, :class:`In`, ...), so
evaluation dispatches on the variant type instead of re-inspecting dictionary
keys for every document.

Top-level ``$and`` / ``$or`` / ``$nor`` clauses decode into
:class:`LogicalCondition`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class UnsupportedOperatorError(ValueError):
    """An unknown query operator or pipeline stage was used in strict mode."""

    def __init__(self, operator: str, context: str = "query") -> None:
        super().__init__(f"Unsupported {context} operator: {operator}")
        self.operator = operator
        self.context = context


class InvalidQueryError(ValueError):
    """A known operator was given an operand of the wrong shape."""


class ComparisonOp(Enum):
    """Ordering comparison operators."""

    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"


class LogicalOp(Enum):
    """Top-level logical combinators."""

    AND = "$and"
    OR = "$or"
    NOR = "$nor"


@dataclass(frozen=True, slots=True)
class Equals:
    """Field equals a literal (strict equality)."""

    value: Any


@dataclass(frozen=True, slots=True)
class NotEquals:
    """Field does not equal a literal."""

    value: Any


@dataclass(frozen=True, slots=True)
class Compare:
    """Field is ordered relative to a literal."""

    op: ComparisonOp
    value: Any


@dataclass(frozen=True, slots=True)
class In:
    """Field equals one of the listed values."""

    values: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class NotIn:
    """Field equals none of the listed values."""

    values: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class Exists:
    """Field presence matches ``expected``."""

    expected: bool


Predicate = Equals | NotEquals | Compare | In | NotIn | Exists


@dataclass(frozen=True, slots=True)
class FieldCondition:
    """All predicates must hold for the value at ``path``."""

    path: str
    predicates: tuple[Predicate, ...]


@dataclass(frozen=True, slots=True)
class LogicalCondition:
    """A logical combination of sub-queries."""

    op: LogicalOp
    clauses: tuple[Query, ...]


Condition = FieldCondition | LogicalCondition


@dataclass(frozen=True, slots=True)
class Query:
    """A decoded filter. All conditions are implicitly AND-ed."""

    conditions: tuple[Condition, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.conditions


MATCH_ALL = Query()

_LOGICAL_OPS = {op.value: op for op in LogicalOp}
_COMPARISON_OPS = {op.value: op for op in ComparisonOp}


def parse_query(raw: Mapping[str, Any] | Query | None, strict: bool = False) -> Query:
    """Decode a filter document into a :class:`Query`.

    Args:
        raw: The filter document. ``None`` and ``{}`` match everything.
            An already decoded ``Query`` is returned unchanged.
        strict: Raise on unknown operators instead of ignoring them.

    Returns:
        The decoded query.

    Raises:
        UnsupportedOperatorError: Unknown operator in strict mode.
        InvalidQueryError: Malformed operand for a known operator.
    """
    if raw is None:
        return MATCH_ALL
    if isinstance(raw, Query):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidQueryError(f"Query must be a mapping, got {type(raw).__name__}")

    conditions: list[Condition] = []
    for key, value in raw.items():
        if key in _LOGICAL_OPS:
            conditions.append(_parse_logical(_LOGICAL_OPS[key], value, strict))
        elif key.startswith("$"):
            _unknown(key, strict)
        else:
            conditions.append(FieldCondition(key, _parse_field(value, strict)))
    return Query(tuple(conditions))


def _parse_logical(op: LogicalOp, value: Any, strict: bool) -> LogicalCondition:
    if not isinstance(value, (list, tuple)) or not value:
        raise InvalidQueryError(f"{op.value} requires a non-empty list of queries")
    return LogicalCondition(op, tuple(parse_query(clause, strict) for clause in value))


def _is_operator_document(value: Any) -> bool:
    return isinstance(value, Mapping) and any(
        isinstance(key, str) and key.startswith("$") for key in value
    )


def _parse_field(value: Any, strict: bool) -> tuple[Predicate, ...]:
    if not _is_operator_document(value):
        return (Equals(value),)

    predicates: list[Predicate] = []
    for op, operand in value.items():
        if op in _COMPARISON_OPS:
            predicates.append(Compare(_COMPARISON_OPS[op], operand))
        elif op == "$eq":
            predicates.append(Equals(operand))
        elif op == "$ne":
            predicates.append(NotEquals(operand))
        elif op == "$in":
            predicates.append(In(_as_values(op, operand)))
        elif op == "$nin":
            predicates.append(NotIn(_as_values(op, operand)))
        elif op == "$exists":
            predicates.append(Exists(bool(operand)))
        else:
            _unknown(op, strict)
    return tuple(predicates)


def _as_values(op: str, operand: Any) -> tuple[Any, ...]:
    if not isinstance(operand, (list, tuple, set, frozenset)):
        raise InvalidQueryError(f"{op} requires a list, got {type(operand).__name__}")
    return tuple(operand)


def _unknown(op: str, strict: bool) -> None:
    if strict:
        raise UnsupportedOperatorError(op)
    logger.debug("Ignoring unknown query operator %s", op)
