"""Equality and ordering rules for document values.

Equality is strict: a ``bool`` never equals a number, and a missing field
equals nothing but another missing field. Ordering comparisons are only
defined between mutually comparable values (numbers with numbers, strings
with strings, otherwise same type); anything else compares as "no match"
rather than raising.

Sorting needs a total order, so values of different types are ranked by type
first (missing < None < numbers < strings < mappings < lists < bools < other),
and :func:`sort_documents` is stable.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import cmp_to_key
from numbers import Real
from typing import Any

from docbench.domain.services.field_path import get_path
from docbench.domain.value_objects.identifiers import MISSING
from docbench.domain.value_objects.pipeline import SortKey
from docbench.domain.value_objects.query import ComparisonOp


def values_equal(left: Any, right: Any) -> bool:
    """Strict equality between two document values.

    Mappings and arrays are compared element by element under the same
    rules, so ``[1]`` does not equal ``[True]`` and ``{"a": 0}`` does not
    equal ``{"a": False}``.
    """
    if left is MISSING or right is MISSING:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, Mapping) or isinstance(right, Mapping):
        if not (isinstance(left, Mapping) and isinstance(right, Mapping)):
            return False
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) or isinstance(right, (list, tuple)):
        if not (isinstance(left, (list, tuple)) and isinstance(right, (list, tuple))):
            return False
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    return bool(left == right)


def contains(values: Iterable[Any], candidate: Any) -> bool:
    """Return True if ``candidate`` equals any element of ``values``."""
    return any(values_equal(value, candidate) for value in values)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _comparable(left: Any, right: Any) -> bool:
    if left is MISSING or right is MISSING or left is None or right is None:
        return False
    if _is_number(left) and _is_number(right):
        return True
    return type(left) is type(right)


def compare_values(left: Any, op: ComparisonOp, right: Any) -> bool:
    """Evaluate ``left <op> right`` without cross-type coercion."""
    if not _comparable(left, right):
        return False
    try:
        if op is ComparisonOp.GT:
            return bool(left > right)
        if op is ComparisonOp.GTE:
            return bool(left >= right)
        if op is ComparisonOp.LT:
            return bool(left < right)
        return bool(left <= right)
    except TypeError:
        return False


def _type_rank(value: Any) -> int:
    if value is MISSING:
        return 0
    if value is None:
        return 1
    if isinstance(value, bool):
        return 6
    if _is_number(value):
        return 2
    if isinstance(value, str):
        return 3
    if isinstance(value, Mapping):
        return 4
    if isinstance(value, (list, tuple)):
        return 5
    return 7


def sort_compare(left: Any, right: Any) -> int:
    """Three-way comparison usable for sorting mixed-type values."""
    left_rank, right_rank = _type_rank(left), _type_rank(right)
    if left_rank != right_rank:
        return -1 if left_rank < right_rank else 1
    try:
        if left < right:
            return -1
        if left > right:
            return 1
    except TypeError:
        pass
    return 0


def sort_documents(
    documents: Iterable[Mapping[str, Any]],
    keys: tuple[SortKey, ...],
) -> list[Mapping[str, Any]]:
    """Stable multi-key sort.

    Keys are compared in order and the first non-equal comparison decides;
    documents equal on every key keep their relative order.
    """
    if not keys:
        return list(documents)

    decorated = [
        (tuple(get_path(doc, key.path) for key in keys), doc) for doc in documents
    ]

    def compare(left: tuple[tuple[Any, ...], Any], right: tuple[tuple[Any, ...], Any]) -> int:
        for key, left_value, right_value in zip(keys, left[0], right[0]):
            result = sort_compare(left_value, right_value)
            if result:
                return -result if key.descending else result
        return 0

    decorated.sort(key=cmp_to_key(compare))
    return [doc for _, doc in decorated]
