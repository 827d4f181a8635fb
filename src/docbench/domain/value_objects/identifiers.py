"""Document identity primitives."""

from __future__ import annotations

from typing import Final, NewType

DocumentId = NewType("DocumentId", int)
"""Identity assigned by a storage adapter on insertion. Monotonically increasing."""

ID_FIELD: Final = "_id"
"""Name of the distinguished identity field on stored documents."""

FIELD_REF_PREFIX: Final = "$"
"""Marker that turns a string expression into a reference to a document field."""


class _Missing:
    """Sentinel for a field that is absent from a document.

    Distinct from ``None``: a stored ``null`` is a value, an absent key is not.
    """

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


def is_field_ref(expression: object) -> bool:
    """Return True if ``expression`` is a ``"$field"`` reference string."""
    return (
        isinstance(expression, str)
        and len(expression) > 1
        and expression.startswith(FIELD_REF_PREFIX)
    )
