"""Query matcher: evaluates decoded filters against documents.

Used by every adapter that has no native query engine, on its find, update,
delete and count paths, and by the ``$match`` aggregation stage.

Semantics:
    - An empty query matches every document.
    - Top-level conditions, and the operators inside one field's operator
      document, are all implicitly AND-ed.
    - Literal values use strict equality; a missing field equals no literal.
    - ``$gt/$gte/$lt/$lte`` only hold between comparable values.
    - ``$exists`` tests own-key presence, so a stored ``None`` exists.

The matcher is pure and read-only.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from docbench.domain.services.field_path import get_path
from docbench.domain.services.ordering import compare_values, contains, values_equal
from docbench.domain.value_objects.identifiers import MISSING
from docbench.domain.value_objects.query import (
    Compare,
    Equals,
    Exists,
    FieldCondition,
    In,
    LogicalCondition,
    LogicalOp,
    NotEquals,
    NotIn,
    Predicate,
    Query,
    parse_query,
)


class QueryMatcher:
    """Evaluates filter documents against stored documents.

    Usage:
        matcher = QueryMatcher()
        matcher.matches({"age": 30}, {"age": {"$gt": 25}})  # True

    Args:
        strict: Reject unknown operators instead of treating them as
            always-true.
    """

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def compile(self, query: Mapping[str, Any] | Query | None) -> Query:
        """Decode a filter once so it can be evaluated against many documents."""
        return parse_query(query, self._strict)

    def matches(self, document: Mapping[str, Any], query: Mapping[str, Any] | Query | None) -> bool:
        """Return True if ``document`` satisfies ``query``."""
        return evaluate(document, self.compile(query))


def evaluate(document: Mapping[str, Any], query: Query) -> bool:
    """Evaluate a decoded query against one document."""
    for condition in query.conditions:
        if isinstance(condition, FieldCondition):
            value = get_path(document, condition.path)
            for predicate in condition.predicates:
                if not _holds(predicate, value):
                    return False
        elif not _evaluate_logical(document, condition):
            return False
    return True


def _evaluate_logical(document: Mapping[str, Any], condition: LogicalCondition) -> bool:
    if condition.op is LogicalOp.AND:
        return all(evaluate(document, clause) for clause in condition.clauses)
    if condition.op is LogicalOp.OR:
        return any(evaluate(document, clause) for clause in condition.clauses)
    return not any(evaluate(document, clause) for clause in condition.clauses)


def _holds(predicate: Predicate, value: Any) -> bool:
    if isinstance(predicate, Equals):
        return values_equal(value, predicate.value)
    if isinstance(predicate, Compare):
        return compare_values(value, predicate.op, predicate.value)
    if isinstance(predicate, NotEquals):
        return not values_equal(value, predicate.value)
    if isinstance(predicate, In):
        return contains(predicate.values, value)
    if isinstance(predicate, NotIn):
        return not contains(predicate.values, value)
    if isinstance(predicate, Exists):
        return (value is not MISSING) == predicate.expected
    raise TypeError(f"Unhandled predicate type: {type(predicate).__name__}")


def matches(
    document: Mapping[str, Any],
    query: Mapping[str, Any] | Query | None,
    strict: bool = False,
) -> bool:
    """Return True if ``document`` satisfies ``query``.

    Convenience wrapper around :class:`QueryMatcher` for one-off checks.
    """
    return evaluate(document, parse_query(query, strict))
