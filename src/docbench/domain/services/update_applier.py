"""Update applier: applies decoded update specs to documents.

The applier never mutates its input. It returns a new top-level mapping, and
nested mappings and lists on the written paths are copied before they change.
Adapters can therefore keep stored documents immutable and detect
modification by comparing the old and new versions.

Operand values are deep-copied on the way in, so a caller that later changes
the object it passed to ``$set`` or ``$push`` never reaches a stored document.

Operators are applied in the fixed order ``$set, $unset, $inc, $push, $pull,
$addToSet``. The identity field is never touched by any operator or by a
literal merge.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from numbers import Real
from typing import Any

from docbench.domain.services.field_path import get_path, set_path, unset_path
from docbench.domain.services.ordering import contains, values_equal
from docbench.domain.value_objects.identifiers import ID_FIELD, MISSING
from docbench.domain.value_objects.update import (
    FieldUpdate,
    InvalidUpdateError,
    ReplacementUpdate,
    UpdateOperator,
    UpdateSpec,
    parse_update,
)


def _touches_identity(path: str) -> bool:
    return path == ID_FIELD or path.startswith(ID_FIELD + ".")


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def apply_update(
    document: Mapping[str, Any],
    update: Mapping[str, Any] | UpdateSpec,
) -> dict[str, Any]:
    """Apply ``update`` to ``document`` and return the updated copy.

    Args:
        document: The stored document (left unchanged).
        update: An operator document, a literal merge document, or an
            already decoded spec.

    Returns:
        A new document reflecting every operator.

    Raises:
        InvalidUpdateError: Malformed update, or ``$inc`` against a
            non-numeric value.
    """
    spec = parse_update(update)
    result = dict(document)

    if isinstance(spec, ReplacementUpdate):
        for path, value in spec.fields:
            if not _touches_identity(path):
                result[path] = copy.deepcopy(value)
        return result

    for operation in spec.operations:
        if not _touches_identity(operation.path):
            _apply_operation(result, operation)
    return result


def _apply_operation(document: dict[str, Any], operation: FieldUpdate) -> None:
    operator, path = operation.operator, operation.path
    value = copy.deepcopy(operation.value)

    if operator is UpdateOperator.SET:
        set_path(document, path, value)

    elif operator is UpdateOperator.UNSET:
        unset_path(document, path)

    elif operator is UpdateOperator.INC:
        if not _is_number(value):
            raise InvalidUpdateError(f"$inc delta for {path!r} must be a number, got {value!r}")
        current = get_path(document, path)
        if current is MISSING or current is None:
            current = 0
        elif not _is_number(current):
            raise InvalidUpdateError(
                f"Cannot apply $inc to non-numeric field {path!r} ({type(current).__name__})"
            )
        set_path(document, path, current + value)

    elif operator is UpdateOperator.PUSH:
        set_path(document, path, [*_as_list(document, path), value])

    elif operator is UpdateOperator.PULL:
        current = get_path(document, path)
        if isinstance(current, list):
            set_path(document, path, [item for item in current if not values_equal(item, value)])

    elif operator is UpdateOperator.ADD_TO_SET:
        current = _as_list(document, path)
        if not contains(current, value):
            set_path(document, path, [*current, value])


def _as_list(document: Mapping[str, Any], path: str) -> list[Any]:
    current = get_path(document, path)
    return current if isinstance(current, list) else []


class UpdateApplier:
    """Object form of :func:`apply_update` for adapters that hold collaborators."""

    def apply(
        self,
        document: Mapping[str, Any],
        update: Mapping[str, Any] | UpdateSpec,
    ) -> dict[str, Any]:
        return apply_update(document, update)

    def compile(self, update: Mapping[str, Any] | UpdateSpec) -> UpdateSpec:
        """Decode an update once so it can be applied to many documents."""
        return parse_update(update)

