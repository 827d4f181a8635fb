"""Update specifications decoded from MongoDB-style update documents.

An update document is either an operator document::

    {"$set": {"status": "active"}, "$inc": {"visits": 1}}

or a bare literal document whose fields are merged into the target. Decoding
happens once in :func:`parse_update`; the result lists its operations in the
fixed application order ``$set, $unset, $inc, $push, $pull, $addToSet``
regardless of the key order in the input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class InvalidUpdateError(ValueError):
    """An update could not be decoded or applied."""


class UpdateOperator(Enum):
    """Supported update operators, declared in application order."""

    SET = "$set"
    UNSET = "$unset"
    INC = "$inc"
    PUSH = "$push"
    PULL = "$pull"
    ADD_TO_SET = "$addToSet"


@dataclass(frozen=True, slots=True)
class FieldUpdate:
    """One operator applied to the field at ``path``."""

    operator: UpdateOperator
    path: str
    value: Any = None


@dataclass(frozen=True, slots=True)
class OperatorUpdate:
    """Operator-based update; ``operations`` are already in application order."""

    operations: tuple[FieldUpdate, ...]


@dataclass(frozen=True, slots=True)
class ReplacementUpdate:
    """Literal document shallow-merged into the target."""

    fields: tuple[tuple[str, Any], ...]


UpdateSpec = OperatorUpdate | ReplacementUpdate

_OPERATORS = {op.value: op for op in UpdateOperator}


def parse_update(raw: Mapping[str, Any] | OperatorUpdate | ReplacementUpdate) -> UpdateSpec:
    """Decode an update document.

    If none of the recognised operator keys is present the whole document is
    treated as a literal merge.

    Raises:
        InvalidUpdateError: The document is not a mapping, or an operator's
            operand is not a mapping of field paths.
    """
    if isinstance(raw, (OperatorUpdate, ReplacementUpdate)):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidUpdateError(f"Update must be a mapping, got {type(raw).__name__}")

    if not any(key in _OPERATORS for key in raw):
        return ReplacementUpdate(tuple(raw.items()))

    operations: list[FieldUpdate] = []
    for operator in UpdateOperator:
        operand = raw.get(operator.value)
        if operand is None:
            continue
        if not isinstance(operand, Mapping):
            raise InvalidUpdateError(
                f"{operator.value} requires a mapping of fields, got {type(operand).__name__}"
            )
        for path, value in operand.items():
            operations.append(FieldUpdate(operator, path, value))
    return OperatorUpdate(tuple(operations))
