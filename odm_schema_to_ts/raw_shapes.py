"""
Raw field-definition shapes.

A raw field definition is classified exactly once into one of five shapes;
the extractor then pattern-matches on the shape instead of re-testing the
raw value at every recursive step.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Prefixes stripped from string type markers ("Schema.Types.ObjectId" -> "ObjectId")
MARKER_PREFIXES = ("Schema.Types.", "mongoose.Schema.Types.", "Types.")

# Marker used for an empty mapping, which declares a free-form field
MIXED_MARKER = "Mixed"


@dataclass(frozen=True)
class RawShape:
    """Base class for all raw field shapes."""


@dataclass(frozen=True)
class PrimitiveMarker(RawShape):
    """A bare type marker: a class/function identity or a string name."""

    name: str = ""


@dataclass(frozen=True)
class ArrayWrapper(RawShape):
    """A one-element list wrapping the element definition (None when empty)."""

    element: RawShape | None = None


@dataclass(frozen=True)
class TypedObject(RawShape):
    """An option mapping carrying a ``type`` key."""

    type_shape: RawShape = field(default_factory=PrimitiveMarker)
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BareEnumObject(RawShape):
    """An option mapping with ``enum`` but no ``type``."""

    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NestedObject(RawShape):
    """An embedded sub-document: a field map of its own."""

    fields: Mapping[str, Any] = field(default_factory=dict)


def marker_name(marker: Any) -> str:
    """Get the lookup name of a type marker."""
    if isinstance(marker, str):
        for prefix in MARKER_PREFIXES:
            if marker.startswith(prefix):
                return marker[len(prefix) :]
        return marker
    return getattr(marker, "__name__", None) or getattr(marker, "_name", None) or ""


def schema_fields(value: Any) -> Mapping[str, Any] | None:
    """Return the field map of a schema-like object (one exposing ``obj``)."""
    obj = getattr(value, "obj", None)
    if isinstance(obj, Mapping):
        return obj
    return None


def classify(raw: Any) -> RawShape:
    """Classify a raw field definition into its shape."""
    if isinstance(raw, (list, tuple)):
        return ArrayWrapper(element=classify(raw[0]) if raw else None)

    if isinstance(raw, Mapping):
        if not raw:
            return PrimitiveMarker(name=MIXED_MARKER)
        if raw.get("type") is not None:
            return TypedObject(type_shape=classify(raw["type"]), options=raw)
        if raw.get("enum") is not None:
            return BareEnumObject(options=raw)
        return NestedObject(fields=raw)

    sub_schema = schema_fields(raw)
    if sub_schema is not None:
        return NestedObject(fields=sub_schema)

    return PrimitiveMarker(name=marker_name(raw))
