"""Aggregation pipeline stages decoded from MongoDB-style stage documents.

A pipeline is an ordered list of single-key stage documents::

    [
        {"$match": {"age": {"$gte": 25}}},
        {"$group": {"_id": "$city", "count": {"$sum": 1}}},
        {"$sort": {"count": -1}},
        {"$limit": 10},
    ]

:func:`parse_pipeline` turns it into a tuple of stage variants. Sort
specifications are shared with ``find`` options through :func:`parse_sort`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from docbench.domain.value_objects.identifiers import ID_FIELD
from docbench.domain.value_objects.query import (
    InvalidQueryError,
    Query,
    UnsupportedOperatorError,
    parse_query,
)

logger = logging.getLogger(__name__)


class AccumulatorOp(Enum):
    """Group accumulators."""

    SUM = "$sum"
    AVG = "$avg"
    MIN = "$min"
    MAX = "$max"
    COUNT = "$count"
    ADD_TO_SET = "$addToSet"
    PUSH = "$push"
    FIRST = "$first"
    LAST = "$last"


@dataclass(frozen=True, slots=True)
class SortKey:
    """One key of a multi-key sort."""

    path: str
    descending: bool = False


@dataclass(frozen=True, slots=True)
class Accumulator:
    """A named accumulator computed per group."""

    name: str
    op: AccumulatorOp
    operand: Any


@dataclass(frozen=True, slots=True)
class MatchStage:
    query: Query


@dataclass(frozen=True, slots=True)
class GroupStage:
    key: Any
    accumulators: tuple[Accumulator, ...]


@dataclass(frozen=True, slots=True)
class SortStage:
    keys: tuple[SortKey, ...]


@dataclass(frozen=True, slots=True)
class LimitStage:
    count: int


@dataclass(frozen=True, slots=True)
class SkipStage:
    count: int


@dataclass(frozen=True, slots=True)
class ProjectStage:
    """Inclusion projection; ``fields`` maps output name to a source expression.

    A source of ``True`` copies the field of the same name.
    """

    fields: tuple[tuple[str, Any], ...]


@dataclass(frozen=True, slots=True)
class CountStage:
    name: str


Stage = MatchStage | GroupStage | SortStage | LimitStage | SkipStage | ProjectStage | CountStage

_ACCUMULATORS = {op.value: op for op in AccumulatorOp}


def parse_sort(spec: Mapping[str, Any] | Sequence[Any] | None) -> tuple[SortKey, ...]:
    """Decode a sort specification.

    Accepts ``{"field": 1, "other": -1}`` or ``[("field", 1), ("other", -1)]``.

    Raises:
        InvalidQueryError: A direction other than 1 or -1.
    """
    if not spec:
        return ()
    items = spec.items() if isinstance(spec, Mapping) else spec
    keys: list[SortKey] = []
    for item in items:
        try:
            path, direction = item
        except (TypeError, ValueError) as e:
            raise InvalidQueryError(f"Invalid sort key: {item!r}") from e
        if isinstance(direction, bool) or direction not in (1, -1):
            raise InvalidQueryError(f"Sort direction for {path!r} must be 1 or -1")
        keys.append(SortKey(path, descending=direction == -1))
    return tuple(keys)


def parse_pipeline(raw: Sequence[Mapping[str, Any]], strict: bool = False) -> tuple[Stage, ...]:
    """Decode a pipeline into stage variants, preserving order.

    Args:
        raw: The list of single-key stage documents.
        strict: Raise on unknown stages and accumulators instead of skipping them.

    Raises:
        InvalidQueryError: A stage document is malformed.
        UnsupportedOperatorError: Unknown stage or accumulator in strict mode.
    """
    if isinstance(raw, Mapping) or not isinstance(raw, Sequence):
        raise InvalidQueryError("Pipeline must be a list of stage documents")

    stages: list[Stage] = []
    for stage_doc in raw:
        if not isinstance(stage_doc, Mapping) or len(stage_doc) != 1:
            raise InvalidQueryError(f"Pipeline stage must have exactly one key: {stage_doc!r}")
        name, params = next(iter(stage_doc.items()))

        if name == "$match":
            stages.append(MatchStage(parse_query(params, strict)))
        elif name == "$group":
            stages.append(_parse_group(params, strict))
        elif name == "$sort":
            stages.append(SortStage(parse_sort(params)))
        elif name == "$limit":
            stages.append(LimitStage(_non_negative(name, params)))
        elif name == "$skip":
            stages.append(SkipStage(_non_negative(name, params)))
        elif name == "$project":
            stages.append(_parse_project(params))
        elif name == "$count":
            if not isinstance(params, str) or not params:
                raise InvalidQueryError("$count requires a non-empty field name")
            stages.append(CountStage(params))
        elif strict:
            raise UnsupportedOperatorError(name, context="pipeline stage")
        else:
            logger.debug("Skipping unknown pipeline stage %s", name)
    return tuple(stages)


def _non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQueryError(f"{name} requires a non-negative integer, got {value!r}")
    return value


def _parse_group(params: Any, strict: bool) -> GroupStage:
    if not isinstance(params, Mapping):
        raise InvalidQueryError("$group requires a mapping")

    accumulators: list[Accumulator] = []
    for name, expression in params.items():
        if name == ID_FIELD:
            continue
        if not isinstance(expression, Mapping) or len(expression) != 1:
            raise InvalidQueryError(f"Accumulator {name!r} must have exactly one operator")
        op_name, operand = next(iter(expression.items()))
        op = _ACCUMULATORS.get(op_name)
        if op is None:
            if strict:
                raise UnsupportedOperatorError(op_name, context="accumulator")
            logger.debug("Skipping unknown accumulator %s for %s", op_name, name)
            continue
        accumulators.append(Accumulator(name, op, operand))
    return GroupStage(params.get(ID_FIELD), tuple(accumulators))


def _parse_project(params: Any) -> ProjectStage:
    if not isinstance(params, Mapping):
        raise InvalidQueryError("$project requires a mapping")
    fields: list[tuple[str, Any]] = []
    for name, source in params.items():
        if source is True or (type(source) is int and source == 1):
            fields.append((name, True))
        elif isinstance(source, str):
            fields.append((name, source))
        # Exclusions (0/False) drop the field, which inclusion projection already does.
    return ProjectStage(tuple(fields))
