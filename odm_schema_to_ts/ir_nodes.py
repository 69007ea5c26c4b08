"""
IR (Intermediate Representation) node definitions.

Every schema source is normalized into these nodes and every renderer
consumes them. Nodes are frozen once built; cross-model references are
carried by name only, so the owned ``nested`` structure can never cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    """Closed set of IR field types."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ARRAY = "array"
    OBJECT = "object"  # keyed map / open map
    ANY = "any"
    NULL = "null"
    UNDEFINED = "undefined"

    @classmethod
    def coerce(cls, value: Any) -> FieldType:
        """Convert a type name (or member) to a FieldType, falling back to ANY."""
        if isinstance(value, FieldType):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.ANY


@dataclass(frozen=True)
class NormalizedField:
    """A field of a normalized model."""

    name: str
    type: FieldType = FieldType.ANY
    required: bool = True

    is_array: bool = False
    array_of: FieldType | None = None

    is_enum: bool = False
    enum_values: tuple[Any, ...] = ()

    is_reference: bool = False
    reference_to: str | None = None

    is_primary: bool = False
    is_unique: bool = False
    default_value: Any = None
    description: str | None = None

    # Embedded sub-document members, owned by this field
    nested: tuple[NormalizedField, ...] | None = None


@dataclass(frozen=True)
class NormalizedModel:
    """A normalized model, ready for rendering."""

    model_name: str
    table_name: str
    fields: tuple[NormalizedField, ...] = ()
    source: str = "unknown"
    file_path: str | None = None
    description: str | None = None

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]
