"""Canonical string keys for text descriptions.

A text description is either an atomic string or an ordered structure
(``list`` or ``tuple``) whose elements are strings, numeric parameters, or
further structures::

    "ore"
    ["item-name.iron-ore"]
    ["recipe-description", ["item-name.iron-plate"], 2]

The scheduler uses :func:`serialize` purely as a deduplication key.  Keys are
never parsed back, so the only contract is that two descriptions get the same
key exactly when they are structurally and value-equal.

Key format
----------
- Atomic string: the string itself.  A string that begins with ``{`` or
  ``\\`` gets a leading ``\\`` so it can never be mistaken for a structure
  key.
- Structure: ``{`` + comma-separated elements + ``}``.  Strings are
  JSON-quoted, numbers use their JSON form (integral floats collapse to the
  integer spelling so that ``2`` and ``2.0`` agree, as they do under ``==``),
  nested structures recurse.

Lists and tuples holding the same elements produce the same key.  Nesting
depth is unbounded: the walk uses an explicit stack rather than recursion.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

from translation_batcher.translation.errors import InvalidDescription

#: One element inside a structure: a string, a numeric parameter, or a
#: nested structure.
DescriptionElement = Union[
    str, int, float, list["DescriptionElement"], tuple["DescriptionElement", ...]
]

#: A text description: an atomic string, or a list/tuple of elements.
Description = Union[str, list[DescriptionElement], tuple[DescriptionElement, ...]]

_STRUCTURE_TYPES = (list, tuple)
_ESCAPED_PREFIXES = ("{", "\\")
_END = object()


@dataclass(slots=True)
class _Frame:
    """One open structure on the serializer's stack."""

    node_id: int
    elements: Iterator[object]
    emitted: bool = False


def serialize(description: Description) -> str:
    """Return the canonical deduplication key for ``description``.

    Raises:
        InvalidDescription: If ``description`` (or any nested element) is not
            a string, a finite number, or a list/tuple, or if a structure
            contains itself.
    """
    if isinstance(description, str):
        if description.startswith(_ESCAPED_PREFIXES):
            return "\\" + description
        return description
    if not isinstance(description, _STRUCTURE_TYPES):
        raise InvalidDescription(
            f"text description must be a string, list or tuple, got {type(description).__name__}",
            description,
        )
    return _serialize_structure(description)


def _serialize_structure(root: list | tuple) -> str:
    parts: list[str] = ["{"]
    stack: list[_Frame] = [_Frame(id(root), iter(root))]
    open_ids: set[int] = {id(root)}

    while stack:
        frame = stack[-1]
        element = next(frame.elements, _END)

        if element is _END:
            stack.pop()
            open_ids.discard(frame.node_id)
            parts.append("}")
            continue

        if frame.emitted:
            parts.append(",")
        frame.emitted = True

        if isinstance(element, str):
            parts.append(json.dumps(element, ensure_ascii=False))
        elif isinstance(element, _STRUCTURE_TYPES):
            if id(element) in open_ids:
                raise InvalidDescription("text description contains itself", root)
            open_ids.add(id(element))
            stack.append(_Frame(id(element), iter(element)))
            parts.append("{")
        else:
            parts.append(_format_parameter(element))

    return "".join(parts)


def _format_parameter(value: object) -> str:
    """Format a numeric parameter, rejecting anything else."""
    # bool is an int subclass but never a valid parameter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidDescription(
            f"unsupported element in text description: {type(value).__name__}", value
        )
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidDescription("numeric parameters must be finite", value)
        if value.is_integer():
            return str(int(value))
    return json.dumps(value)
