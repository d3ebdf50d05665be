"""Structural schema inference for parsed JSON.

The inferred shape is a compact stand-in for a possibly huge payload: it
is what gets flattened into field names for classification.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

_LOGGER = logging.getLogger(__name__)

# Maximum recursion depth for schema inference to prevent stack overflow
_MAX_RECURSION_DEPTH = 50

# String format detectors, tried in order; first match wins
_STRING_FORMATS: list[tuple[str, re.Pattern[str]]] = [
    ("date-time", re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")),
    ("date", re.compile(r"^\d{4}-\d{2}-\d{2}$")),
    ("email", re.compile(r"^[^@]+@[^@]+\.[^@]+$")),
    ("uri", re.compile(r"^https?://")),
]

Kind = str | tuple[str, ...]


@dataclass
class SchemaNode:
    """Inferred shape of a JSON value.

    Attributes:
        kind: One of object, array, string, integer, number, boolean,
            null, unknown; or a tuple of those after a merge conflict
        properties: Property shapes (objects only)
        items: Merged item shape (arrays only)
        format: Inferred string format (date-time, date, email, uri)
    """

    kind: Kind
    properties: dict[str, SchemaNode] = field(default_factory=dict)
    items: SchemaNode | None = None
    format: str | None = None

    @property
    def kinds(self) -> tuple[str, ...]:
        """Kinds as a tuple, whether or not the node was widened."""
        return self.kind if isinstance(self.kind, tuple) else (self.kind,)

    def has_kind(self, kind: str) -> bool:
        return kind in self.kinds

    def widen(self, other: Kind) -> None:
        """Widen this node's kind to include another kind (or kinds)."""
        kinds = list(self.kinds)
        for kind in other if isinstance(other, tuple) else (other,):
            if kind not in kinds:
                kinds.append(kind)
        self.kind = kinds[0] if len(kinds) == 1 else tuple(kinds)

    def to_dict(self) -> dict[str, Any]:
        """Render as a JSON-Schema-like dict (used for logging)."""
        result: dict[str, Any] = {"type": list(self.kind) if isinstance(self.kind, tuple) else self.kind}
        if self.format:
            result["format"] = self.format
        if self.properties:
            result["properties"] = {key: node.to_dict() for key, node in self.properties.items()}
        if self.items is not None:
            result["items"] = self.items.to_dict()
        return result


def _string_node(value: str) -> SchemaNode:
    for fmt, pattern in _STRING_FORMATS:
        if pattern.search(value):
            return SchemaNode("string", format=fmt)
    return SchemaNode("string")


def _merge_into(target: SchemaNode, node: SchemaNode) -> None:
    """Merge one array element's shape into the accumulated item shape.

    Properties seen for the first time are taken as-is; a property seen
    again only has its kind widened and a missing format adopted.
    """
    if target.kinds != node.kinds:
        target.widen(node.kind)
    for key, prop in node.properties.items():
        existing = target.properties.get(key)
        if existing is None:
            target.properties[key] = prop
            continue
        if existing.kinds != prop.kinds:
            existing.widen(prop.kind)
        if prop.format and not existing.format:
            existing.format = prop.format
    if node.items is not None and target.items is None:
        target.items = node.items
    if node.format and not target.format:
        target.format = node.format


def infer_schema(value: Any, _depth: int = 0) -> SchemaNode:
    """Infer the structural shape of a parsed JSON value.

    Args:
        value: Parsed JSON (dict, list, str, int, float, bool, None)
        _depth: Current recursion depth (internal use)

    Returns:
        SchemaNode describing the value

    Example:
        >>> infer_schema({"email": "a@b.co", "tags": []}).to_dict()
        {'type': 'object', 'properties': {'email': {'type': 'string', 'format': 'email'}, 'tags': {'type': 'array', 'items': {'type': 'unknown'}}}}
    """
    if _depth > _MAX_RECURSION_DEPTH:
        _LOGGER.warning("Max recursion depth exceeded in schema inference")
        return SchemaNode("unknown")

    if value is None:
        return SchemaNode("null")
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return SchemaNode("boolean")
    if isinstance(value, int):
        return SchemaNode("integer")
    if isinstance(value, float):
        return SchemaNode("number")
    if isinstance(value, str):
        return _string_node(value)
    if isinstance(value, dict):
        return SchemaNode(
            "object",
            properties={str(key): infer_schema(item, _depth + 1) for key, item in value.items()},
        )
    if isinstance(value, list):
        if not value:
            return SchemaNode("array", items=SchemaNode("unknown"))
        nodes = [infer_schema(item, _depth + 1) for item in value]
        merged = SchemaNode(nodes[0].kind, format=nodes[0].format, items=nodes[0].items)
        merged.properties = dict(nodes[0].properties)
        for node in nodes[1:]:
            _merge_into(merged, node)
        return SchemaNode("array", items=merged)
    return SchemaNode("unknown")


def field_names(schema: SchemaNode) -> list[str]:
    """Flatten a schema into the unique property names it contains.

    Only the last path segment is kept, so ``user.profile.email``
    contributes ``email`` (and the containers ``user`` and ``profile``
    contribute their own names). Order is first-seen, depth-first.

    Args:
        schema: Inferred schema

    Returns:
        De-duplicated list of field names
    """
    names: dict[str, None] = {}
    stack: list[SchemaNode] = [schema]
    while stack:
        node = stack.pop()
        children: list[SchemaNode] = []
        for key, prop in node.properties.items():
            names.setdefault(key, None)
            children.append(prop)
        if node.items is not None:
            children.append(node.items)
        stack.extend(reversed(children))
    return list(names)
