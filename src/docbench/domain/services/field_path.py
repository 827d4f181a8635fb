"""Dotted field path access on schema-less documents.

``"address.city"`` descends into nested mappings; a numeric segment indexes
into a list, for readers and writers alike. Writers never mutate the
containers they were given below the top level: every nested mapping or list
on the written path is copied first, so a caller that copies the top-level
document gets copy-on-write semantics for free.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from docbench.domain.value_objects.identifiers import MISSING
from docbench.domain.value_objects.update import InvalidUpdateError


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Return the value at ``path`` or ``MISSING`` if any segment is absent."""
    if "." not in path:
        return document.get(path, MISSING)

    current: Any = document
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return MISSING
    return current


def has_path(document: Mapping[str, Any], path: str) -> bool:
    """Return True if ``path`` names an own key, even one holding ``None``."""
    return get_path(document, path) is not MISSING


def _list_index(path: str, part: str) -> int:
    if not part.isdigit():
        raise InvalidUpdateError(
            f"Cannot use non-numeric segment {part!r} of {path!r} on an array"
        )
    return int(part)


def _child(container: Any, path: str, part: str) -> Any:
    if isinstance(container, list):
        index = _list_index(path, part)
        return container[index] if index < len(container) else MISSING
    return container.get(part, MISSING)


def _assign(container: Any, path: str, part: str, value: Any) -> None:
    if isinstance(container, list):
        index = _list_index(path, part)
        if index >= len(container):
            container.extend([None] * (index - len(container) + 1))
        container[index] = value
    else:
        container[part] = value


def set_path(document: dict[str, Any], path: str, value: Any) -> None:
    """Set ``path`` on ``document`` in place, creating intermediate mappings.

    A numeric segment below an array sets that element, padding the array
    with ``None`` when the index is past its end.

    Raises:
        InvalidUpdateError: A non-numeric segment addresses an array.
    """
    if "." not in path:
        document[path] = value
        return

    *parents, leaf = path.split(".")
    current: Any = document
    for part in parents:
        child = _child(current, path, part)
        if isinstance(child, Mapping):
            child = dict(child)
        elif isinstance(child, list):
            child = list(child)
        else:
            child = {}
        _assign(current, path, part, child)
        current = child
    _assign(current, path, leaf, value)


def unset_path(document: dict[str, Any], path: str) -> bool:
    """Remove ``path`` from ``document`` in place.

    An array element is set to ``None`` rather than removed, so the
    positions of the elements after it do not shift.

    Returns:
        True if a field was removed.
    """
    if "." not in path:
        return document.pop(path, MISSING) is not MISSING
    if not has_path(document, path):
        return False

    *parents, leaf = path.split(".")
    current: Any = document
    for part in parents:
        child = _child(current, path, part)
        child = list(child) if isinstance(child, list) else dict(child)
        _assign(current, path, part, child)
        current = child
    if isinstance(current, list):
        current[int(leaf)] = None
        return True
    return current.pop(leaf, MISSING) is not MISSING
